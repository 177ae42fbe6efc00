# ==============================================================================
# WSGI Entry Point - Para Gunicorn/Waitress en producción
# ==============================================================================
# Punto de entrada para servidores WSGI.
#
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── pos_cerveza/     <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# Los datos se leen de POS_DATA_DIR (por defecto, el directorio del paquete).
# ==============================================================================

from pos_cerveza.main import create_app

app = create_app()

# ==============================================================================
# PUNTO DE ENTRADA
# ==============================================================================
# Variable 'app' exportada para Gunicorn:
#   gunicorn wsgi:app
#
# Para desarrollo local:
#   python wsgi.py
# ==============================================================================

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)

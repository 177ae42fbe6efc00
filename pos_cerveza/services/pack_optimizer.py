# ==============================================================================
# OPTIMIZADOR DE EMPAQUES
# ==============================================================================
# Convierte el consumo unitario de un ticket Local en la combinación de
# empaques con descuento (Caja, Media Caja, Six Pack...) usando el criterio
# voraz: primero el empaque más grande, el resto en unidades.
#
# Para llevar no hay optimización: cada item se cobra a precio estándar.
# ==============================================================================

from typing import Dict, Iterable, List, NamedTuple, Protocol

from pos_cerveza.models import (
    CAJA,
    MEDIA_CAJA,
    SIX_PACK,
    UNIDAD,
    BeerVariety,
    OrderItem,
    OrderTotal,
    OrderType,
    StockKey,
    new_item_id,
    utc_now_iso,
)
from pos_cerveza.performance_logger import profile_function
from pos_cerveza.services.catalog_service import PRICE_MODE_LOCAL, PRICE_MODE_STANDARD


class PricingSource(Protocol):
    """Lo que el optimizador necesita del catálogo."""

    emission_options: List[str]

    def get_price(self, product: str, emission: str, subtype: str, mode: str = ...) -> float:
        ...

    def get_bs_price(self, product: str, emission: str, subtype: str, mode: str = ...) -> float:
        ...

    def get_units_per_emission(self, emission: str, subtype: str) -> int:
        ...


class PackCandidate(NamedTuple):
    """Empaque elegible para un producto/subtipo."""
    name: str
    units: int
    price_bs: float
    price_usd: float


def build_consumption_map(items: Iterable[OrderItem]) -> Dict[StockKey, int]:
    """
    Cuenta unidades consumidas por (producto, subtipo) a partir de los slots.

    Solo cuentan los slots ocupados; cantidad y emisión del item se ignoran.
    El orden de las claves sigue la primera aparición.
    """
    consumption: Dict[StockKey, int] = {}
    for item in items:
        for slot_product in item.slots or []:
            if slot_product:
                key = StockKey(slot_product, item.subtype)
                consumption[key] = consumption.get(key, 0) + 1
    return consumption


def candidate_packs(product: str, subtype: str, pricing: PricingSource) -> List[PackCandidate]:
    """
    Empaques con descuento aplicables, del más grande al más pequeño.

    Se descartan los que contienen una sola unidad o no tienen precio
    local definido. A igual tamaño se respeta el orden del catálogo.
    """
    defaults = [CAJA, MEDIA_CAJA]
    if subtype and 'lata' in subtype.lower():
        defaults.append(SIX_PACK)

    names = list(dict.fromkeys(defaults + list(pricing.emission_options or [])))

    candidates = []
    for name in names:
        units = pricing.get_units_per_emission(name, subtype)
        price_usd = pricing.get_price(product, name, subtype, PRICE_MODE_LOCAL)
        if units > 1 and price_usd > 0:
            candidates.append(PackCandidate(
                name=name,
                units=units,
                price_bs=pricing.get_bs_price(product, name, subtype, PRICE_MODE_LOCAL),
                price_usd=price_usd
            ))

    candidates.sort(key=lambda c: c.units, reverse=True)
    return candidates


def is_greedy_canonical(sizes: Iterable[int]) -> bool:
    """
    True si los tamaños forman una cadena de divisores (36 → 18 → 6...),
    caso en que el reparto voraz no deja combinaciones mejores sin explorar.
    """
    ordered = sorted(set(sizes), reverse=True)
    return all(larger % smaller == 0 for larger, smaller in zip(ordered, ordered[1:]))


def _optimized_line(product, emission, subtype, count, price_bs, price_usd) -> OrderItem:
    return OrderItem(
        id=new_item_id(),
        name=product,
        beer_variety=BeerVariety.NORMAL,
        emission=emission,
        subtype=subtype,
        quantity=count,
        added_at=utc_now_iso(),
        unit_price_bs=price_bs,
        unit_price_usd=price_usd,
        total_price_bs=count * price_bs,
        total_price_usd=count * price_usd,
        order_type=OrderType.LOCAL.value
    )


@profile_function(name="Calcular total del ticket")
def calculate_order_total(
    items: List[OrderItem],
    order_type: str,
    pricing: PricingSource
) -> OrderTotal:
    """
    Calcula el total de un conjunto de items.

    Local: agrupa el consumo de los slots por (producto, subtipo) y reparte
    cada grupo en empaques de mayor a menor a tarifa local; el sobrante se
    cobra como 'Unidad' a tarifa local. Las líneas resultantes reemplazan a
    los items originales al cerrar el ticket.

    Para llevar: cada item se cobra a precio estándar por su empaque; las
    cajas variadas con composición usan su propio precio unitario.

    Args:
        items: Items del ticket
        order_type: 'Local', 'Llevar' o 'Para Llevar'
        pricing: Fuente de precios y conversiones (CatalogService)

    Returns:
        OrderTotal con totales, detalle legible e items optimizados
    """
    result = OrderTotal()
    total_bs = 0.0
    total_usd = 0.0

    if order_type != OrderType.LOCAL:
        for item in items:
            quantity = item.quantity or 1
            if item.is_variado and item.composition:
                total_bs += (item.unit_price_bs or 0) * quantity
                total_usd += (item.unit_price_usd or 0) * quantity
            else:
                product = item.product_name
                total_bs += pricing.get_bs_price(product, item.emission, item.subtype, PRICE_MODE_STANDARD) * quantity
                total_usd += pricing.get_price(product, item.emission, item.subtype, PRICE_MODE_STANDARD) * quantity
            result.optimized_items.append(item.copy())

        result.total_bs = round(total_bs, 2)
        result.total_usd = round(total_usd, 2)
        return result

    for key, total_units in build_consumption_map(items).items():
        product, subtype = key
        remaining = total_units

        candidates = candidate_packs(product, subtype, pricing)
        if not is_greedy_canonical(c.units for c in candidates):
            print(
                f"[OPTIMIZACIÓN] Empaques de {product} ({subtype}) no son múltiplos entre sí: "
                f"{[c.units for c in candidates]}; el reparto puede no ser el más barato"
            )

        for cand in candidates:
            count = remaining // cand.units
            if count > 0:
                total_bs += count * cand.price_bs
                total_usd += count * cand.price_usd
                remaining %= cand.units
                result.details.append(f"{count} {cand.name}{'s' if count > 1 else ''}")
                result.optimized_items.append(
                    _optimized_line(product, cand.name, subtype, count, cand.price_bs, cand.price_usd)
                )

        # Sobrante en unidades
        if remaining > 0:
            price_bs = pricing.get_bs_price(product, UNIDAD, subtype, PRICE_MODE_LOCAL)
            price_usd = pricing.get_price(product, UNIDAD, subtype, PRICE_MODE_LOCAL)
            total_bs += remaining * price_bs
            total_usd += remaining * price_usd
            result.optimized_items.append(
                _optimized_line(product, UNIDAD, subtype, remaining, price_bs, price_usd)
            )

    result.total_bs = round(total_bs, 2)
    result.total_usd = round(total_usd, 2)
    return result

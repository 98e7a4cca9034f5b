# inventory_intelligence/services/stock_service.py
from typing import Dict, Tuple, Any, List

from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.utils.math_utils import safe_int
from inventory_intelligence.logging_setup import get_logger

logger = get_logger(__name__)

IN_TRANSIT_STATUSES = ['pending', 'in_transit']

class StockService:
    """Service for aggregating the current stock position of each product/location."""

    def __init__(self, interface: DatabaseInterface):
        self.interface = interface

    def get_in_transit_quantities(self) -> Dict[Tuple[str, str], int]:
        """Units on open transfers, keyed by (product_id, destination_location_id)."""
        transfers = self.interface.select('transfers', {'status': IN_TRANSIT_STATUSES})
        if not transfers:
            return {}

        destinations = {t['id']: t['destination_location_id'] for t in transfers}
        line_items = self.interface.select('transfer_line_items', {'transfer_id': list(destinations)})

        in_transit = {}
        for item in line_items:
            key = (item['product_id'], destinations[item['transfer_id']])
            in_transit[key] = in_transit.get(key, 0) + safe_int(item.get('quantity'), 0)
        return in_transit

    def get_stock_positions(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        """Aggregate inventory batches and open transfers.

        A destination with nothing on hand but stock on the way still gets a
        position, with a quantity of 0.

        Returns:
            Dictionary keyed by (product_id, location_id)
        """
        products = {p['id']: p for p in self.interface.select('products')}
        locations = {l['id']: l for l in self.interface.select('locations')}
        batches = self.interface.select('inventory_batches')

        positions = {}

        def position_for(product_id: str, location_id: str) -> Dict[str, Any]:
            key = (product_id, location_id)
            if key not in positions:
                product = products.get(product_id, {})
                location = locations.get(location_id, {})
                positions[key] = {
                    'product_id': product_id,
                    'sku': product.get('sku') or '',
                    'product_name': product.get('name') or '',
                    'supplier_id': product.get('supplier_id'),
                    'location_id': location_id,
                    'location_name': location.get('name') or '',
                    'location_type': location.get('type') or '',
                    'quantity': 0,
                    'reserved_quantity': 0,
                    'in_transit_quantity': 0,
                    'available_stock': 0,
                }
            return positions[key]

        for batch in batches:
            position = position_for(batch['product_id'], batch['location_id'])
            position['quantity'] += max(0, safe_int(batch.get('quantity'), 0))
            position['reserved_quantity'] += max(0, safe_int(batch.get('reserved_quantity'), 0))

        for (product_id, location_id), quantity in self.get_in_transit_quantities().items():
            position_for(product_id, location_id)['in_transit_quantity'] += quantity

        for position in positions.values():
            position['available_stock'] = max(0, position['quantity'] - position['reserved_quantity'])

        logger.debug(f"Aggregated {len(positions)} stock positions from {len(batches)} batches")
        return positions

    @staticmethod
    def positions_for_product(positions: Dict[Tuple[str, str], Dict[str, Any]], product_id: str) -> List[Dict[str, Any]]:
        """All stock positions of one product."""
        return [p for (pid, _), p in positions.items() if pid == product_id]

"""
HTTP surface: status codes, error bodies, permissions and the public availability route.
"""
import httpx
from sqlalchemy import text

from stockledger.extensions import db
from stockledger.models import InventoryMovement, InventoryRecord
from stockledger.services import concurrency, inventory_service
from stockledger.services.feed_import_service import ShipStationClient


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json['checks']['database']['status'] == 'healthy'


def test_management_listing(client, variant, warehouse, stock):
    stock(variant, warehouse, 4)

    response = client.get('/inventory/management?filter=low-stock')

    assert response.status_code == 200
    assert response.json['counts'] == {'all': 1, 'low_stock': 1, 'out_of_stock': 0}
    assert [row['sku'] for row in response.json['items']] == ['BS-M']


def test_management_bad_filter(client, db_session):
    response = client.get('/inventory/management?filter=sideways')
    assert response.status_code == 400
    assert 'error' in response.json


def test_flat_listing_bad_query_args(client, db_session):
    assert client.get('/inventory?page=abc').status_code == 400
    assert client.get('/inventory?low_stock=maybe').status_code == 400


def test_flat_listing_with_synthetic_row(client, variant):
    response = client.get('/inventory')
    assert response.status_code == 200
    assert response.json['items'][0]['id'] == f'synthetic-{variant.id}'
    assert response.json['pagination']['total'] == 1


def test_update_record_route(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 10)

    response = client.put(f'/inventory/{record.id}', json={'quantity': 4, 'reason': 'Recount'})

    assert response.status_code == 200
    assert response.json['inventory']['quantity'] == 4
    assert response.json['inventory']['location']['name'] == 'Main Warehouse'


def test_update_record_route_errors(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 10)

    assert client.put(f'/inventory/{record.id}', json={'quantity': -1}).status_code == 400
    assert client.put(f'/inventory/{record.id}', json={'quantity': 1.5}).status_code == 400
    assert client.put(f'/inventory/{record.id}', json={'colour': 'red'}).status_code == 400
    assert client.put('/inventory/999999', json={'quantity': 1}).status_code == 404


def test_update_record_route_rejects_empty_body(client, variant, warehouse, stock, sync_events):
    record = stock(variant, warehouse, 10)
    sync_events.clear()

    response = client.put(f'/inventory/{record.id}', json={})
    assert response.status_code == 400
    assert response.json['error'] == 'At least one field to update must be provided'

    assert client.put(f'/inventory/{record.id}', json={'reason': 'Recount'}).status_code == 400
    assert sync_events == []


def test_update_record_route_conflict(client, variant, warehouse, stock, monkeypatch):
    record = stock(variant, warehouse, 10)
    original = inventory_service.get_record

    def get_record_then_concurrent_write(record_id, **kwargs):
        loaded = original(record_id, **kwargs)
        db.session.execute(
            text('UPDATE inventory_records SET version_id = version_id + 1 WHERE id = :id'),
            {'id': record_id},
        )
        return loaded

    monkeypatch.setattr(inventory_service, 'get_record', get_record_then_concurrent_write)
    monkeypatch.setattr(concurrency.time, 'sleep', lambda seconds: None)

    response = client.put(f'/inventory/{record.id}', json={'quantity': 4})

    assert response.status_code == 409
    assert 'concurrent request' in response.json['error']
    db.session.expire_all()
    assert db.session.get(InventoryRecord, record.id).quantity == 10
    assert db.session.query(InventoryMovement).filter_by(inventory_id=record.id).count() == 1


def test_update_variant_routes(client, variant, warehouse, storefront, stock):
    stock(variant, warehouse, 10)

    response = client.put(
        f'/inventory/variant/{variant.id}/update',
        json={'on_hand': 12, 'committed': 3, 'barcode': '111', 'sell_when_out_of_stock': True},
    )
    assert response.status_code == 200
    assert response.json['inventory']['reserved_qty'] == 3

    missing = client.put(
        f'/inventory/variant/{variant.id}/location/{storefront.id}/update',
        json={'on_hand': 1},
    )
    assert missing.status_code == 404

    empty = client.put(f'/inventory/variant/{variant.id}/location/{warehouse.id}/update', json={})
    assert empty.status_code == 400


def test_variant_reads(client, variant, warehouse, stock):
    stock(variant, warehouse, 6)

    details = client.get(f'/inventory/variant/{variant.id}/details')
    assert details.status_code == 200
    assert details.json['on_hand'] == 6

    records = client.get(f'/inventory/variant/{variant.id}')
    assert [r['quantity'] for r in records.json['items']] == [6]

    orders = client.get(f'/inventory/variant/{variant.id}/committed-orders')
    assert orders.json == {'orders': []}

    assert client.get('/inventory/variant/999999/details').status_code == 404


def test_movement_route(client, variant, warehouse, sync_events):
    response = client.post('/inventory/movement', json={
        'variant_id': variant.id,
        'location_id': warehouse.id,
        'quantity': 5,
        'type': 'PURCHASE',
        'reason': 'PO-9',
    }, headers={'X-User-Id': 'buyer-1'})

    assert response.status_code == 201
    assert response.json['created'] is True
    assert response.json['movement']['quantity'] == 5
    assert sync_events[-1].context['initiated_by'] == 'buyer-1'


def test_movement_route_validation(client, variant, warehouse):
    base = {'variant_id': variant.id, 'location_id': warehouse.id, 'quantity': 5, 'reason': 'x'}

    assert client.post('/inventory/movement', json={**base, 'type': 'TELEPORT'}).status_code == 400
    assert client.post('/inventory/movement', json=base).status_code == 400
    assert client.post('/inventory/movement', json={**base, 'type': 'SALE'}).status_code == 400
    assert client.post('/inventory/movement', json={**base, 'type': 'PURCHASE', 'location_id': 424242}).status_code == 404
    assert db.session.query(InventoryRecord).count() == 0


def test_bulk_adjust_reports_failing_line(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 10)

    response = client.post('/inventory/bulk/adjust', json={
        'items': [{'id': str(record.id), 'delta': -3}, {'id': 'synthetic-1', 'quantity': 2}],
        'reason': 'Recount',
    })

    assert response.status_code == 400
    assert response.json['line'] == 1
    db.session.expire_all()
    assert db.session.get(InventoryRecord, record.id).quantity == 10


def test_bulk_adjust_route(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 30)

    response = client.post('/inventory/bulk/adjust', json={
        'items': [{'id': record.id, 'delta': -100}],
        'reason': 'Shrink',
    })

    assert response.status_code == 200
    assert response.json['updated'] == 1
    assert response.json['items'][0]['quantity'] == 0


def test_bulk_movement_route(client, variant, make_variant, warehouse):
    other = make_variant('BS-L', 'Large')

    response = client.post('/inventory/bulk/movement', json={
        'items': [
            {'variant_id': variant.id, 'location_id': warehouse.id, 'quantity': 2},
            {'variant_id': other.id, 'location_id': warehouse.id, 'quantity': 3},
        ],
        'type': 'RETURN',
        'reason': 'RMA batch',
    })

    assert response.status_code == 201
    assert response.json['count'] == 2
    assert [i['movement']['business_type'] for i in response.json['items']] == ['RETURN', 'RETURN']


def test_bulk_movement_requires_items(client, db_session):
    response = client.post('/inventory/bulk/movement', json={'items': [], 'type': 'SALE', 'reason': 'x'})
    assert response.status_code == 400
    assert response.json['error'] == 'items array is required'


def test_bulk_transfer_route(client, variant, make_variant, warehouse, storefront, stock):
    source = stock(variant, warehouse, 8)
    unplaced = make_variant('BS-L', 'Large')

    response = client.post('/inventory/bulk/transfer', json={
        'items': [{'id': source.id, 'quantity': 3}, {'id': f'synthetic-{unplaced.id}', 'quantity': 4}],
        'target_location_id': storefront.id,
        'reason': 'Rebalance',
    })

    assert response.status_code == 200
    assert (response.json['transferred'], response.json['created'], response.json['skipped']) == (1, 1, 0)
    assert [r['status'] for r in response.json['results']] == ['transfer', 'creation']
    assert db.session.query(InventoryMovement).filter_by(type='OUTBOUND').count() == 1


def test_low_and_out_of_stock_routes(client, variant, make_variant, warehouse, stock):
    stock(variant, warehouse, 2)
    empty = stock(make_variant('BS-L', 'Large'), warehouse, 1)
    client.put(f'/inventory/{empty.id}', json={'quantity': 0})

    low = client.get('/inventory/low-stock')
    out = client.get('/inventory/out-of-stock')

    assert [i['variant']['sku'] for i in low.json['items']] == ['BS-M']
    assert [i['variant']['sku'] for i in out.json['items']] == ['BS-L']


def test_permission_checker_gates_routes(client, variant, warehouse, stock, permission_checker):
    stock(variant, warehouse, 3)

    denied = client.get('/inventory/management')
    assert denied.status_code == 403
    assert denied.json['required_permission'] == 'INVENTORY:READ'

    permission_checker.add('INVENTORY:READ')
    assert client.get('/inventory/management').status_code == 200
    assert client.post('/inventory/bulk/adjust', json={}).status_code == 403


def test_availability_route_is_public(client, variant, warehouse, stock, permission_checker):
    stock(variant, warehouse, 3)

    response = client.get(f'/inventory/availability/{variant.id}')

    assert response.status_code == 200
    assert response.json['total_available'] == 3
    assert response.json['in_stock'] is True


def test_shipstation_sync_routes(client, make_variant, warehouse, monkeypatch):
    make_variant('BS-M', 'Medium', shipstation_sku='SS-BS-M')

    def handler(request):
        if 'sku' in request.url.params:
            return httpx.Response(200, json={'inventory': []})
        return httpx.Response(200, json={'inventory': [{'sku': 'SS-BS-M', 'available': 11}], 'pages': 1})

    def fake_client(config):
        return ShipStationClient('https://ss.example', 'k', transport=httpx.MockTransport(handler))

    monkeypatch.setattr(ShipStationClient, 'from_config', staticmethod(fake_client))

    response = client.post('/inventory/sync/shipstation')
    assert response.status_code == 200
    assert response.json['synced'] == 1
    assert 'Synced 1' in response.json['message']

    assert client.post('/inventory/sync/shipstation/SS-MISSING').status_code == 404


def test_shipstation_upstream_failure(client, db_session, monkeypatch):
    def handler(request):
        return httpx.Response(502)

    def fake_client(config):
        return ShipStationClient('https://ss.example', 'k', transport=httpx.MockTransport(handler))

    monkeypatch.setattr(ShipStationClient, 'from_config', staticmethod(fake_client))

    response = client.post('/inventory/sync/shipstation/SS-ANY')
    assert response.status_code == 502


def test_shipstation_sku_sync_rejects_non_numeric_quantity(client, make_variant, warehouse, monkeypatch):
    make_variant('BS-M', 'Medium', shipstation_sku='SS-BS-M')

    def handler(request):
        return httpx.Response(200, json={'inventory': [{'sku': 'SS-BS-M', 'available': 'lots'}]})

    def fake_client(config):
        return ShipStationClient('https://ss.example', 'k', transport=httpx.MockTransport(handler))

    monkeypatch.setattr(ShipStationClient, 'from_config', staticmethod(fake_client))

    response = client.post('/inventory/sync/shipstation/SS-BS-M')

    assert response.status_code == 400
    assert 'SS-BS-M' in response.json['error']
    assert db.session.query(InventoryRecord).count() == 0


def test_batch_routes(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 20)

    created = client.post('/inventory/batches', json={
        'inventory_id': record.id,
        'batch_number': 'LOT-7',
        'quantity': 8,
        'expiry_date': '2999-01-01T00:00:00Z',
    })
    assert created.status_code == 201
    batch_id = created.json['batch']['id']
    assert created.json['batch']['expiry_date'] == '2999-01-01T00:00:00Z'

    listed = client.get(f'/inventory/batches?inventory_id={record.id}')
    assert [b['batch_number'] for b in listed.json['items']] == ['LOT-7']

    fetched = client.get(f'/inventory/batches/{batch_id}')
    assert fetched.json['batch']['variant']['sku'] == 'BS-M'

    updated = client.put(f'/inventory/batches/{batch_id}', json={'quantity': 5})
    assert updated.status_code == 200
    assert updated.json['batch']['quantity'] == 5

    flat = client.get('/inventory')
    assert [b['id'] for b in flat.json['items'][0]['batches']] == [batch_id]

    assert client.delete(f'/inventory/batches/{batch_id}').status_code == 200
    assert client.get(f'/inventory/batches/{batch_id}').json == {'error': 'Batch not found'}


def test_batch_route_validation(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 20)
    base = {'inventory_id': record.id, 'batch_number': 'LOT-1', 'quantity': 1}

    assert client.post('/inventory/batches', json={**base, 'quantity': -1}).status_code == 400
    assert client.post('/inventory/batches', json={**base, 'expiry_date': 'soon'}).status_code == 400
    assert client.post('/inventory/batches', json={**base, 'inventory_id': 999999}).status_code == 404
    assert client.get('/inventory/batches').status_code == 400
    assert client.get('/inventory/batches/expiring?days=0').status_code == 400
    assert client.get('/inventory/batches/expiring?days=366').status_code == 400


def test_expiry_routes(client, variant, warehouse, stock):
    record = stock(variant, warehouse, 20)
    for number, expiry in (('OLD', '2000-01-01'), ('FAR', '2999-01-01'), ('NONE', None)):
        client.post('/inventory/batches', json={
            'inventory_id': record.id, 'batch_number': number, 'quantity': 1, 'expiry_date': expiry,
        })

    expired = client.get('/inventory/batches/expired')
    assert [b['batch_number'] for b in expired.json['items']] == ['OLD']
    assert expired.json['items'][0]['location']['name'] == 'Main Warehouse'

    assert client.get('/inventory/batches/expiring?days=365').json['items'] == []


def test_batch_delete_requires_permission(client, variant, warehouse, stock, permission_checker):
    record = stock(variant, warehouse, 20)
    permission_checker.update({'INVENTORY:CREATE', 'INVENTORY:READ'})
    created = client.post('/inventory/batches', json={'inventory_id': record.id, 'batch_number': 'L', 'quantity': 1})

    response = client.delete(f"/inventory/batches/{created.json['batch']['id']}")

    assert response.status_code == 403
    assert response.json['required_permission'] == 'INVENTORY:DELETE'

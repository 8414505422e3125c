from inventory_tracker import crud, schemas
from inventory_tracker.errors import StoreError


def _quantity(client, product_id):
    return client.get(f"/api/products/{product_id}").json()["quantity"]


def _transactions(client, product_id):
    return client.get(f"/api/products/{product_id}/transactions").json()


def test_index_shows_connection_and_empty_list(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Database Connected" in response.text
    assert "No products found" in response.text


def test_add_product_lists_it_and_clears_form(client):
    response = client.post(
        "/products",
        data={"name": "Widget", "description": "", "price": "9.99", "quantity": "10"},
    )

    assert response.status_code == 200
    assert response.url.path == "/"
    assert "Product added successfully" in response.text
    assert "<td>Widget</td>" in response.text
    assert "$9.99" in response.text
    assert '<td class="quantity">10</td>' in response.text
    assert 'value="Widget"' not in response.text


def test_add_product_with_bad_number_keeps_form(client):
    response = client.post(
        "/products",
        data={"name": "Widget", "description": "blue", "price": "abc", "quantity": "10"},
    )

    assert response.status_code == 400
    assert "Error adding product" in response.text
    assert "price" in response.text
    assert 'value="Widget"' in response.text
    assert 'value="blue"' in response.text
    assert client.get("/api/products").json() == []


def test_add_product_rejects_negative_quantity(client):
    response = client.post(
        "/products",
        data={"name": "Widget", "description": "", "price": "1.00", "quantity": "-4"},
    )

    assert response.status_code == 400
    assert client.get("/api/products").json() == []


def test_add_product_store_failure_is_reported(client, monkeypatch):
    async def failing_create(db, product):
        raise StoreError("Could not add product: connection lost")

    monkeypatch.setattr(crud, "create_product", failing_create)

    response = client.post(
        "/products",
        data={"name": "Widget", "description": "", "price": "9.99", "quantity": "10"},
    )

    assert response.status_code == 503
    assert "Error adding product: Could not add product: connection lost" in response.text
    assert 'value="Widget"' in response.text


def test_decrement_updates_quantity_and_logs_removal(client, widget):
    response = client.post(f"/products/{widget['id']}/adjust", data={"change": "-1", "quantity": "10"})

    assert response.status_code == 200
    assert "Quantity updated successfully" in response.text
    assert '<td class="quantity">9</td>' in response.text
    assert _quantity(client, widget["id"]) == 9
    [transaction] = _transactions(client, widget["id"])
    assert transaction["quantity_change"] == -1
    assert transaction["transaction_type"] == "removal"
    assert transaction["notes"] == "Manual removal of 1 units"


def test_increment_logs_addition(client, widget):
    client.post(f"/products/{widget['id']}/adjust", data={"change": "1", "quantity": "10"})

    assert _quantity(client, widget["id"]) == 11
    assert [t["transaction_type"] for t in _transactions(client, widget["id"])] == ["addition"]


def test_negative_result_is_rejected_before_reaching_the_store(client, monkeypatch):
    created = client.post("/api/products", json={"name": "Empty", "price": "1.00", "quantity": 0}).json()

    async def unexpected_adjust(*args, **kwargs):
        raise AssertionError("store should not be called")

    monkeypatch.setattr(crud, "adjust_quantity", unexpected_adjust)

    response = client.post(f"/products/{created['id']}/adjust", data={"change": "-1", "quantity": "0"})

    assert "Quantity cannot be negative" in response.text
    assert _quantity(client, created["id"]) == 0


def test_stale_page_cannot_drive_quantity_negative(client):
    created = client.post("/api/products", json={"name": "Empty", "price": "1.00", "quantity": 0}).json()

    # The page still shows an old quantity of 5
    response = client.post(f"/products/{created['id']}/adjust", data={"change": "-1", "quantity": "5"})

    assert "Quantity cannot be negative" in response.text
    assert _quantity(client, created["id"]) == 0
    assert _transactions(client, created["id"]) == []


def test_two_clicks_from_same_page_both_apply(client, widget):
    for _ in range(2):
        client.post(f"/products/{widget['id']}/adjust", data={"change": "-1", "quantity": "10"})

    assert _quantity(client, widget["id"]) == 8
    assert len(_transactions(client, widget["id"])) == 2


def test_adjust_unknown_product_shows_error(client):
    response = client.post("/products/does-not-exist/adjust", data={"change": "1", "quantity": "3"})

    assert response.status_code == 200
    assert "Error updating quantity" in response.text


def test_index_distinguishes_load_failure_from_empty_list(client, monkeypatch):
    async def failing_list(db):
        raise StoreError("Could not fetch products: timeout")

    monkeypatch.setattr(crud, "list_products", failing_list)

    response = client.get("/")

    assert "Could not load products: Could not fetch products: timeout" in response.text
    assert "No products found" not in response.text


def test_index_reports_failed_connection(client, monkeypatch):
    async def disconnected(db):
        return schemas.ConnectionStatus(connected=False, error="connection refused")

    monkeypatch.setattr(crud, "check_connection", disconnected)

    response = client.get("/")

    assert "Database Disconnected" in response.text
    assert "Database connection failed: connection refused" in response.text
    assert "Database connected successfully" not in response.text


def test_index_reports_successful_connection(client):
    response = client.get("/")

    assert "Database connected successfully" in response.text
    assert "Database connection failed" not in response.text


def test_adjust_only_steps_by_one_unit(client, widget):
    response = client.post(f"/products/{widget['id']}/adjust", data={"change": "1000", "quantity": "10"})

    assert "Error updating quantity" in response.text
    assert _quantity(client, widget["id"]) == 10
    assert _transactions(client, widget["id"]) == []

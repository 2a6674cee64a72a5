"""
Critical Path Testing

A shopper's whole journey through one application instance: signing up,
listing a product, buying it and leaving. Each step depends on the state the
previous one left behind, so they run as a single test.
"""

import re

import pytest

from tests.utils.factories import TEST_PASSWORD, ProductFactory, UserFactory
from tests.utils.helpers import login, post_form

PNG_BYTES = b"\x89PNG\r\n\x1a\ncritical-path"


class TestCriticalPaths:
    """Test critical application paths to ensure basic functionality"""

    def test_application_health(self, client):
        """Test that application starts and responds to health checks"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_every_page_carries_security_headers(self, client):
        response = client.get("/")

        assert "content-security-policy" in response.headers
        assert response.headers["x-content-type-options"] == "nosniff"

    @pytest.mark.integration
    def test_shopper_journey(self, client):
        email = "journey@example.com"

        # Signup lands on the login page with a confirmation
        response = post_form(client, "/signup", UserFactory.signup_fields(email=email))
        assert response.headers["location"] == "/login"
        assert "Account created, please log in." in client.get("/login").text

        login(client, email, TEST_PASSWORD)
        assert "Logout" in client.get("/").text

        # List a product with an image
        response = post_form(
            client,
            "/admin/add-product",
            ProductFactory.form_fields(title="Journey Lamp", price="40.00"),
            files={"image": ("lamp.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 303
        catalog = client.get("/products").text
        assert "Journey Lamp" in catalog
        image_url = re.search(r'src="(/images/[^"]+-lamp\.png)"', catalog).group(1)
        assert client.get(image_url).content == PNG_BYTES

        product_id = re.search(r'href="/products/(\d+)"', catalog).group(1)

        # Buy it twice over
        post_form(client, "/cart", {"product_id": product_id})
        post_form(client, "/cart", {"product_id": product_id})
        assert "Total: $80.00" in client.get("/checkout").text

        response = post_form(client, "/orders")
        assert response.headers["location"] == "/orders"
        assert "Journey Lamp (2)" in client.get("/orders").text

        # Leave
        post_form(client, "/logout")
        assert client.get("/orders", follow_redirects=False).headers["location"] == "/login"

    def test_unknown_route_renders_not_found_page(self, client):
        response = client.get("/no/such/page")

        assert response.status_code == 404
        assert "Page Not Found!" in response.text

import re
from types import SimpleNamespace

import pytest
import stripe

from storesync.settings import Settings


def rich_text(kind, text):
    return {"type": kind, kind: [{"plain_text": text}] if text is not None else []}


def files_prop(urls):
    return {
        "type": "files",
        "files": [{"name": u, "type": "external", "external": {"url": u}} for u in urls],
    }


def notion_page(page_id, name="Tent", sku="CYS-TENT-1", price=750, active=True,
                images=(), variants=None, url_live=None, url_test=None):
    """Build a Notion page envelope using the default column names."""
    props = {
        "Product Name": rich_text("title", name),
        "Product SKU": rich_text("rich_text", sku),
        "Price": {"type": "number", "number": price},
        "Active": {"type": "checkbox", "checkbox": active},
        "PaymentURL": {"type": "url", "url": url_live},
        "Stripe Link (Test)": {"type": "url", "url": url_test},
        "Image": files_prop(images),
    }
    for label, urls in (variants or {}).items():
        props[label] = files_prop(urls)
    return {"id": page_id, "object": "page", "properties": props}


class FakeNotion:
    """In-memory stand-in for notion_client.Client (databases.query, pages.update)."""

    def __init__(self, pages=(), fail_updates=None):
        self._pages = list(pages)
        self.queries = []
        self.updates = []
        self.fail_updates = fail_updates
        self.databases = SimpleNamespace(query=self._query, retrieve=self._retrieve)
        self.pages = SimpleNamespace(update=self._update)

    def _query(self, database_id, filter=None, page_size=100, start_cursor=None):
        self.queries.append({"database_id": database_id, "filter": filter,
                             "page_size": page_size, "start_cursor": start_cursor})
        rows = self._pages
        if filter and "checkbox" in filter:
            prop = filter["property"]
            want = filter["checkbox"]["equals"]
            rows = [p for p in rows if p["properties"].get(prop, {}).get("checkbox") == want]
        start = int(start_cursor or 0)
        end = start + page_size
        has_more = end < len(rows)
        return {
            "object": "list",
            "results": rows[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    def _retrieve(self, database_id):
        props = self._pages[0]["properties"] if self._pages else {}
        return {"id": database_id, "properties": {k: {"type": v["type"]} for k, v in props.items()}}

    def _update(self, page_id, properties):
        if self.fail_updates is not None:
            raise self.fail_updates
        self.updates.append((page_id, properties))
        return {"id": page_id}


class FakeStripe:
    """Dict-backed Product/Price/PaymentLink resources with Stripe's call shapes."""

    def __init__(self, search_error=None):
        self.products = {}
        self.prices = {}
        self.links = {}
        self.calls = []
        self.search_error = search_error
        self.rate_limits = 0
        self.Product = SimpleNamespace(search=self._wrap("Product.search", self._product_search),
                                       list=self._wrap("Product.list", self._product_list),
                                       create=self._wrap("Product.create", self._product_create))
        self.Price = SimpleNamespace(list=self._wrap("Price.list", self._price_list),
                                     create=self._wrap("Price.create", self._price_create))
        self.PaymentLink = SimpleNamespace(list=self._wrap("PaymentLink.list", self._link_list),
                                           create=self._wrap("PaymentLink.create", self._link_create))

    def _wrap(self, name, fn):
        def call(**params):
            self.calls.append((name, dict(params)))
            if self.rate_limits:
                self.rate_limits -= 1
                raise stripe.RateLimitError("Too many requests", http_status=429)
            params.pop("api_key", None)
            params.pop("stripe_version", None)
            return fn(**params)
        return call

    def count(self, name):
        return sum(1 for n, _ in self.calls if n == name)

    def _product_search(self, query, limit=10):
        if self.search_error is not None:
            raise self.search_error
        sku = re.search(r"metadata\['sku'\]:'(.*)'", query).group(1)
        data = [p for p in self.products.values()
                if p["active"] and p["metadata"].get("sku") == sku]
        return {"data": data[:limit]}

    def _product_list(self, active=True, limit=10):
        return {"data": [p for p in self.products.values() if p["active"] == active]}

    def _product_create(self, name, active=True, metadata=None):
        pid = f"prod_{len(self.products) + 1}"
        self.products[pid] = {"id": pid, "name": name, "active": active, "metadata": dict(metadata or {})}
        return self.products[pid]

    def _price_list(self, lookup_keys, active=True, limit=10, expand=None):
        data = [dict(p) for p in self.prices.values()
                if p["active"] == active and p["lookup_key"] in lookup_keys]
        if expand:
            for p in data:
                p["product"] = self.products[p["product"]]
        return {"data": data[:limit]}

    def _price_create(self, product, currency, unit_amount, lookup_key=None,
                      transfer_lookup_key=False, metadata=None):
        holders = [p for p in self.prices.values() if p["lookup_key"] == lookup_key]
        if holders and not transfer_lookup_key:
            raise stripe.InvalidRequestError("lookup_key already in use", "lookup_key")
        for p in holders:
            p["lookup_key"] = None
        pid = f"price_{len(self.prices) + 1}"
        self.prices[pid] = {"id": pid, "product": product, "currency": currency,
                            "unit_amount": unit_amount, "lookup_key": lookup_key,
                            "active": True, "metadata": dict(metadata or {})}
        return self.prices[pid]

    def _link_list(self, active=True, limit=10, expand=None):
        data = []
        for link in self.links.values():
            if link["active"] != active:
                continue
            link = dict(link)
            if expand and "data.line_items" in expand:
                link["line_items"] = {
                    "object": "list",
                    "data": [{"price": {"id": li["price"]}, "quantity": li["quantity"]}
                             for li in link["line_items"]],
                }
            else:
                # line_items is includable only
                link.pop("line_items")
            data.append(link)
        return {"data": data}

    def _link_create(self, line_items, metadata=None):
        lid = f"plink_{len(self.links) + 1}"
        self.links[lid] = {"id": lid, "active": True, "line_items": line_items,
                           "metadata": dict(metadata or {}),
                           "url": f"https://buy.stripe.com/test_{lid}"}
        return self.links[lid]


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    for name in ("NOTION_SCHEMA_PATH", "LOG_FILE", "LINK_POLICY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NOTION_TOKEN", "secret_notion")
    monkeypatch.setenv("NOTION_DB_ID", "db-123")
    monkeypatch.setenv("STRIPE_API_KEY_TEST", "sk_test_123")
    monkeypatch.setenv("STRIPE_API_KEY_LIVE", "sk_live_123")
    monkeypatch.setenv("STRIPE_MODE", "test")
    monkeypatch.setenv("CURRENCY", "USD")
    monkeypatch.setenv("CATALOG_PATH", str(tmp_path / "data" / "products.json"))
    monkeypatch.setenv("IMAGE_CACHE_DIR", str(tmp_path / "assets" / "products"))
    return Settings()

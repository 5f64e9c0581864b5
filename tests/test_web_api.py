"""Endpoint tests against the FastAPI app with in-process fake providers."""

import pytest
from fastapi.testclient import TestClient

from conftest import bars_to_csv
from stockdesk.api.errors import ProviderError
from stockdesk.config import Settings
from stockdesk.web.app import create_app
from stockdesk.web.dependencies import get_alphavantage_client, get_stooq_client


class FakeStooq:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    async def get_daily_csv(self, symbol):
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeAlphaVantage:
    def __init__(self, statements=None, error=None):
        self.statements = statements or {}
        self.error = error

    async def get_statements(self, symbol):
        if self.error:
            raise self.error
        return self.statements


@pytest.fixture
def settings():
    return Settings(
        redis_url="",
        alphavantage_api_key="demo",
        simulation_days=21,
        simulation_num_paths=200,
    )


@pytest.fixture
def make_client(settings):
    def _make(stooq=None, alphavantage=None):
        app = create_app(settings)
        if stooq is not None:
            app.dependency_overrides[get_stooq_client] = lambda: stooq
        if alphavantage is not None:
            app.dependency_overrides[get_alphavantage_client] = lambda: alphavantage
        return TestClient(app)
    return _make


class TestSystem:
    def test_health(self, make_client):
        with make_client() as client:
            resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["alphavantage_configured"] is True
        assert body["cache_backend"] == "memory"


class TestPrices:
    def test_prices(self, make_client, sample_stooq_csv):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            resp = client.get("/api/v1/prices/aapl")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["symbol"] == "AAPL"
        assert data["source"] == "stooq"
        assert len(data["bars"]) == 260
        assert resp.json()["meta"]["cached"] is False

    def test_second_request_cached(self, make_client, sample_stooq_csv):
        stooq = FakeStooq(sample_stooq_csv)
        with make_client(stooq=stooq) as client:
            client.get("/api/v1/prices/AAPL")
            resp = client.get("/api/v1/prices/AAPL")
        assert resp.json()["meta"]["cached"] is True
        assert stooq.calls == 1

    def test_unknown_symbol_404(self, make_client):
        with make_client(stooq=FakeStooq("No data")) as client:
            resp = client.get("/api/v1/prices/ZZZZ")
        assert resp.status_code == 404

    def test_provider_error_502(self, make_client):
        stooq = FakeStooq(error=ProviderError("stooq", "HTTP 503 for AAPL"))
        with make_client(stooq=stooq) as client:
            resp = client.get("/api/v1/prices/AAPL")
        assert resp.status_code == 502
        assert "stooq" in resp.json()["detail"]

    def test_overview(self, make_client, sample_stooq_csv, sample_bars):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            resp = client.get("/api/v1/prices/AAPL/overview")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["latest"]["close"] == pytest.approx(sample_bars[-1]["close"])
        assert data["prev"]["close"] == pytest.approx(sample_bars[-2]["close"])
        for key in ("r1d", "r1w", "r1m", "r1y", "vol30"):
            assert data[key] is not None


class TestQuant:
    def test_quant_report(self, make_client, sample_stooq_csv):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            resp = client.get("/api/v1/quant/AAPL", params={"sims": 100, "days": 10, "seed": 3})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["symbol"] == "AAPL"
        assert data["seed"] == 3
        assert data["window_returns"] == 252
        mc = data["mc"]
        assert mc["sims"] == 100
        assert mc["days"] == 10
        assert mc["p5"] <= mc["p50"] <= mc["p95"]
        assert sum(mc["histogram"]["counts"]) == 100

    def test_quant_deterministic(self, make_client, sample_stooq_csv):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            a = client.get("/api/v1/quant/AAPL", params={"sims": 50, "days": 5}).json()["data"]
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            b = client.get("/api/v1/quant/AAPL", params={"sims": 50, "days": 5}).json()["data"]
        assert a["mc"] == b["mc"]

    def test_short_history_422(self, make_client, sample_bars):
        with make_client(stooq=FakeStooq(bars_to_csv(sample_bars[:30]))) as client:
            resp = client.get("/api/v1/quant/AAPL")
        assert resp.status_code == 422

    def test_invalid_sims_rejected(self, make_client, sample_stooq_csv):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            resp = client.get("/api/v1/quant/AAPL", params={"sims": 0})
        assert resp.status_code == 422

    def test_risk_adjusted(self, make_client, sample_stooq_csv):
        with make_client(stooq=FakeStooq(sample_stooq_csv)) as client:
            base = client.get("/api/v1/quant/AAPL").json()["data"]["mc"]
            resp = client.get("/api/v1/quant/AAPL/risk-adjusted", params={"lam": 2.0})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["lam"] == 2.0
        assert data["mean"] == pytest.approx(base["mean"])
        assert data["risk_adj_price"] == pytest.approx(base["mean"] - 2.0 * base["stdev_price"])


class TestFinancialsAndDCF:
    def test_financials(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.get("/api/v1/financials/test")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["symbol"] == "TEST"
        assert data["as_of"]["latest_period_end"] == "2023-12-31"
        assert len(data["annual"]) == 3
        assert data["annual"][2]["net_debt"] is None

    def test_financials_provider_error(self, make_client):
        fake = FakeAlphaVantage(error=ProviderError("alpha_vantage", "rate limited"))
        with make_client(alphavantage=fake) as client:
            resp = client.get("/api/v1/financials/TEST")
        assert resp.status_code == 502

    def test_financials_no_reports_404(self, make_client):
        with make_client(alphavantage=FakeAlphaVantage({})) as client:
            resp = client.get("/api/v1/financials/TEST")
        assert resp.status_code == 404

    def test_dcf_seeded(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.get("/api/v1/dcf/TEST")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["assumptions"]["revenue_cagr"] == pytest.approx(0.1)
        assert data["assumptions"]["ebit_margin"] == pytest.approx(0.19)
        assert len(data["rows"]) == 5
        assert data["base"]["net_debt"] == 220.0
        assert data["base"]["shares_outstanding"] == 100.0
        assert data["terminal_value_finite"] is True
        assert data["value_per_share"] is not None

    def test_dcf_overrides(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.post(
                "/api/v1/dcf/TEST",
                json={"years": 10, "terminal_method": "exit", "exit_multiple": 12},
            )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert len(data["rows"]) == 10
        assert data["assumptions"]["terminal_method"] == "exit"
        last = data["rows"][-1]
        assert data["terminal_value"] == pytest.approx((last["ebit"] + last["da"]) * 12)

    def test_dcf_infinite_terminal_serialised_as_null(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.post("/api/v1/dcf/TEST", json={"wacc": 0.02, "terminal_growth": 0.03})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["terminal_value_finite"] is False
        assert data["terminal_value"] is None
        assert data["enterprise_value"] is None

    def test_dcf_clamp(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.post("/api/v1/dcf/TEST", json={"wacc": 0.9, "clamp": True})
        assert resp.json()["data"]["assumptions"]["wacc"] == 0.20

    def test_dcf_empty_body(self, make_client, sample_statements):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            seeded = client.get("/api/v1/dcf/TEST").json()["data"]
            posted = client.post("/api/v1/dcf/TEST").json()["data"]
        assert posted["assumptions"] == seeded["assumptions"]

    @pytest.mark.parametrize("wacc", [-1.0, -2.0])
    def test_dcf_rejects_wacc_at_or_below_minus_one(self, make_client, sample_statements, wacc):
        with make_client(alphavantage=FakeAlphaVantage(sample_statements)) as client:
            resp = client.post("/api/v1/dcf/TEST", json={"wacc": wacc})
        assert resp.status_code == 422

import pytest

CRYPTO_PAGE = """<html><body class="live-loading">
<main>
  <div class="crypto-card">
    <span class="crypto-ticker">BTC</span>
    <div class="crypto-price">$64'000.00</div>
    <span class="badge positive">+1.00%</span>
    <div class="stat-value">$1.20T</div>
    <div class="stat-value">$20.0B</div>
  </div>
  <div class="crypto-card">
    <span class="crypto-ticker">ETH</span>
    <div class="crypto-price">$3'000.00</div>
    <span class="badge positive">+0.50%</span>
    <div class="stat-value">$400.00B</div>
    <div class="stat-value">$10.0B</div>
  </div>
  <div class="crypto-card">
    <span class="crypto-ticker">???</span>
    <div class="crypto-price">$1.00</div>
    <span class="badge positive">+0.00%</span>
  </div>
</main>
</body></html>
"""

INDICES_PAGE = """<html><body class="live-loading">
  <div class="index-card" data-symbol="^GSPC">
    <div class="index-value">5'000.00</div>
    <span class="badge positive">+0.20%</span>
    <span class="detail-value">5'010.00</span>
    <span class="detail-value">4'990.00</span>
  </div>
  <div class="index-card" data-symbol="^DJI">
    <div class="index-value">38'000.00</div>
    <span class="badge negative">-0.10%</span>
    <span class="detail-value">38'100.00</span>
    <span class="detail-value">37'900.00</span>
  </div>
</body></html>
"""

ASSETS_PAGE = """<html><body class="live-loading">
  <div class="futures-card" data-symbol="AAPL">
    <div class="futures-price">$140.00</div>
    <span class="badge negative">-1.00%</span>
    <span class="stat-value">$2.80T</span>
    <span class="stat-value">27.0</span>
    <span class="stat-value">$199.62</span>
  </div>
</body></html>
"""

LANDING_PAGE = """<html><body>
  <div class="crypto-card">
    <span class="crypto-ticker">BTC</span>
    <div class="crypto-price">$64'000.00</div>
    <span class="badge positive">+1.00%</span>
  </div>
  <div class="index-card" data-symbol="^GSPC">
    <div class="index-value">5'000.00</div>
    <span class="badge positive">+0.20%</span>
  </div>
</body></html>
"""


@pytest.fixture
def crypto_page() -> str:
    return CRYPTO_PAGE


@pytest.fixture
def indices_page() -> str:
    return INDICES_PAGE


@pytest.fixture
def assets_page() -> str:
    return ASSETS_PAGE


@pytest.fixture
def landing_page() -> str:
    return LANDING_PAGE

"""
Stock Forecast Service - Days-to-stockout prediction with LLM adjustment

Velocity comes from the user's own orders (30/60/90 day windows). Claude
then reviews the most urgent products and may scale the velocity for
seasonality or trend; without an API key, or on any LLM failure, the
plain heuristic is used.

Results are cached per user in memory (STOCK_FORECAST_CACHE_HOURS).

Author: UNISTOCK
Date: 2025-11-24
"""
import json
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import anthropic

from unistock.core.config import settings
from unistock.domain.order import Order
from unistock.domain.product import Product
from unistock.repositories.order_repository import OrderRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.services.credentials_service import as_aware, utcnow

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

MAX_TOKENS = 2048
MAX_PRODUCTS_SCANNED = 100
HISTORY_DAYS = 90

MIN_VELOCITY = 0.1
MIN_FACTOR = 0.5
MAX_FACTOR = 2.0

CRITICAL_DAYS = 7
ATTENTION_DAYS = 21
RISK_DAYS = 14

URGENCY_CRITICAL = "CRITICO"
URGENCY_ATTENTION = "ATENCAO"
URGENCY_OK = "OK"

SYSTEM_PROMPT = """Você é um analista de estoque de e-commerce brasileiro.
Recebe produtos com estoque atual e vendas dos últimos 30/60/90 dias.
Para cada produto, avalie tendência e sazonalidade e responda SOMENTE com um
array JSON, um objeto por produto:
[{"product_id": "...", "adjustment_factor": 1.0, "confidence": 0-100,
  "recommendation": "texto curto", "risk_factors": ["..."]}]
adjustment_factor multiplica a velocidade de vendas (0.5 a 2.0)."""


# ============================================================================
# Pure helpers
# ============================================================================

def sales_velocity(sold_30: int, sold_60: int, sold_90: int) -> float:
    """Mean daily sales across the three windows (never below 0.1)"""
    velocity = (sold_30 / 30 + sold_60 / 60 + sold_90 / 90) / 3
    return velocity if velocity > 0 else MIN_VELOCITY


def units_sold(product_id: str, orders: List[Order], since: datetime, sku: Optional[str] = None) -> int:
    return sum(o.quantity_for(product_id, sku) for o in orders if as_aware(o.order_date) >= since)


def urgency_for(days: float) -> str:
    if days < CRITICAL_DAYS:
        return URGENCY_CRITICAL
    if days < ATTENTION_DAYS:
        return URGENCY_ATTENTION
    return URGENCY_OK


def clamp_factor(value: Any) -> float:
    try:
        factor = float(value)
    except (TypeError, ValueError):
        return 1.0
    return min(max(factor, MIN_FACTOR), MAX_FACTOR)


def heuristic_insight(velocity: float, days: float) -> Dict[str, Any]:
    risks = ["Estoque baixo para a demanda atual"] if days < RISK_DAYS else []
    return {
        'adjustment_factor': 1.0,
        'confidence': 50,
        'recommendation': f"Reabastecer {math.ceil(velocity * 30)} unidades",
        'risk_factors': risks
    }


def parse_llm_insights(text: str) -> Dict[str, Dict[str, Any]]:
    """JSON array (possibly wrapped in prose or a code fence) keyed by product_id"""
    match = re.search(r'\[.*\]', text, re.DOTALL)
    if not match:
        raise ValueError("No JSON array in LLM response")

    insights = {}
    for entry in json.loads(match.group(0)):
        if isinstance(entry, dict) and entry.get('product_id'):
            insights[str(entry['product_id'])] = entry
    return insights


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class StockForecastService:
    """Service for forecasting stockouts of a user's catalog"""

    def __init__(self, product_repository: Optional[ProductRepository] = None,
                 order_repository: Optional[OrderRepository] = None,
                 client: Optional[anthropic.Anthropic] = None):
        self.products = product_repository or ProductRepository()
        self.orders = order_repository or OrderRepository()
        self.model = settings.CLAUDE_MODEL

        if client is not None:
            self.client = client
        elif settings.ANTHROPIC_API_KEY:
            self.client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        else:
            self.client = None
            logger.warning("ANTHROPIC_API_KEY not set, stock forecast will use the heuristic only")

        # keyed by (user_id, max_products)
        self._cache: Dict[Tuple[str, int], Tuple[datetime, Dict[str, Any]]] = {}

    # ==================== CACHE ====================

    def _cached(self, user_id: str, max_products: int, now: datetime) -> Optional[Dict[str, Any]]:
        entry = self._cache.get((user_id, max_products))
        if not entry:
            return None

        created_at, result = entry
        if now - created_at > timedelta(hours=settings.STOCK_FORECAST_CACHE_HOURS):
            return None

        return {
            **result,
            'cached': True,
            'cache_age_minutes': int((now - created_at).total_seconds() // 60)
        }

    def clear_cache(self, user_id: Optional[str] = None) -> None:
        if user_id:
            for key in [k for k in self._cache if k[0] == user_id]:
                del self._cache[key]
        else:
            self._cache.clear()

    # ==================== LLM ====================

    def _llm_insights(self, candidates: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Ask Claude for adjustments; empty dict when unavailable"""
        if not self.client or not candidates:
            return {}

        payload = [
            {
                'product_id': c['product_id'],
                'name': c['product_name'],
                'stock': c['current_stock'],
                'sold_30d': c['sold_30d'],
                'sold_60d': c['sold_60d'],
                'sold_90d': c['sold_90d']
            }
            for c in candidates
        ]

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": json.dumps(payload, ensure_ascii=False)}]
            )

            text = next((block.text for block in response.content if hasattr(block, 'text')), "")
            insights = parse_llm_insights(text)
            logger.info(f"LLM returned insights for {len(insights)} of {len(candidates)} products "
                        f"(tokens {response.usage.input_tokens}/{response.usage.output_tokens})")
            return insights

        except Exception as e:
            logger.warning(f"LLM stock analysis failed, using heuristic: {e}")
            return {}

    # ==================== MAIN ====================

    def _candidate(self, product: Product, orders: List[Order], now: datetime) -> Dict[str, Any]:
        sold_30 = units_sold(product.id, orders, now - timedelta(days=30), product.sku)
        sold_60 = units_sold(product.id, orders, now - timedelta(days=60), product.sku)
        sold_90 = units_sold(product.id, orders, now - timedelta(days=90), product.sku)
        velocity = sales_velocity(sold_30, sold_60, sold_90)

        return {
            'product_id': product.id,
            'product_name': product.name,
            'sku': product.sku,
            'current_stock': product.stock,
            'selling_price': product.selling_price or 0,
            'sold_30d': sold_30,
            'sold_60d': sold_60,
            'sold_90d': sold_90,
            'daily_velocity': velocity,
            'days_until_stockout': max(product.stock, 0) / velocity
        }

    def forecast(self, user_id: str, force_refresh: bool = False, max_products: int = 20,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Forecast stockouts for the user's most urgent products

        Returns:
            {'predictions': [...], 'summary': {...}, 'generated_at', 'cached'}
        """
        now = now or utcnow()

        if not force_refresh:
            cached = self._cached(user_id, max_products, now)
            if cached:
                logger.info(f"Stock forecast cache hit for user {user_id}")
                return cached

        products = self.products.find_by_user(user_id, limit=MAX_PRODUCTS_SCANNED, order_by_stock=True)
        orders = self.orders.find_by_user_since(user_id, now - timedelta(days=HISTORY_DAYS))
        logger.info(f"Forecasting {len(products)} products from {len(orders)} orders (user {user_id})")

        candidates = [self._candidate(p, orders, now) for p in products]
        candidates.sort(key=lambda c: c['days_until_stockout'])
        candidates = candidates[:max_products]

        insights = self._llm_insights(candidates)

        predictions = []
        for c in candidates:
            heuristic = heuristic_insight(c['daily_velocity'], c['days_until_stockout'])
            insight = insights.get(c['product_id'])

            if insight:
                factor = clamp_factor(insight.get('adjustment_factor'))
                confidence = insight.get('confidence', heuristic['confidence'])
                recommendation = insight.get('recommendation') or heuristic['recommendation']
                risk_factors = insight.get('risk_factors') or []
            else:
                factor = 1.0
                confidence = heuristic['confidence']
                recommendation = heuristic['recommendation']
                risk_factors = heuristic['risk_factors']

            days = c['days_until_stockout'] / factor
            predictions.append({
                'product_id': c['product_id'],
                'product_name': c['product_name'],
                'sku': c['sku'],
                'current_stock': c['current_stock'],
                'daily_velocity': round(c['daily_velocity'] * factor, 2),
                'days_until_stockout': round(days, 1),
                'stockout_date': (now + timedelta(days=days)).date().isoformat(),
                'urgency': urgency_for(days),
                'confidence': confidence,
                'recommendation': recommendation,
                'risk_factors': risk_factors,
                'selling_price': c['selling_price']
            })

        predictions.sort(key=lambda p: p['days_until_stockout'])

        critical = [p for p in predictions if p['urgency'] == URGENCY_CRITICAL]
        result = {
            'predictions': predictions,
            'summary': {
                'critical': len(critical),
                'attention': sum(1 for p in predictions if p['urgency'] == URGENCY_ATTENTION),
                'ok': sum(1 for p in predictions if p['urgency'] == URGENCY_OK),
                'total_products': len(predictions),
                'potential_loss_value': round(
                    sum(p['selling_price'] * max(p['current_stock'], 0) for p in critical), 2
                )
            },
            'ai_adjusted': bool(insights),
            'generated_at': now.isoformat()
        }

        self._cache[(user_id, max_products)] = (now, result)
        return {**result, 'cached': False}


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_service_instance: Optional[StockForecastService] = None


def get_stock_forecast_service() -> StockForecastService:
    """Singleton so the in-memory cache survives between requests"""
    global _service_instance
    if _service_instance is None:
        _service_instance = StockForecastService()
    return _service_instance

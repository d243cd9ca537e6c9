"""
Finance Service - Profit breakdown, projections and ad metrics

Pure calculation functions plus a thin service that loads the user's
orders, products and expenses for them.

Author: UNISTOCK
Date: 2025-11-18
"""
import calendar
import logging
import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from unistock.domain.expense import Expense, Recurrence
from unistock.domain.order import Order
from unistock.domain.product import Product
from unistock.repositories.expense_repository import ExpenseRepository
from unistock.repositories.order_repository import OrderRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.services.credentials_service import utcnow

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

DEFAULT_TAX_RATE = 6.0
FALLBACK_COST_RATIO = 0.55
WEEKS_PER_MONTH = 4.33
MARKETPLACE_NET_RATIO = 0.88

DEFAULT_BASE_REVENUE = 133333
DEFAULT_AVG_ORDER_VALUE = 250
SCENARIO_MULTIPLIERS = (70, 100, 130, 200)

TAX_REGIMES = {
    'mei': 0.0,
    'simples_nacional': 6.0,
    'lucro_presumido': 11.33,
    'isento': 0.0,
}

EXPENSE_CATEGORIES = ('fixed', 'variable', 'operational')


@dataclass
class MarketplaceFees:
    """Percent-based fees charged by a marketplace on each sale"""
    commission_percent: float
    payment_fee_percent: float = 0.0
    fixed_fee: float = 0.0
    tax_percent: float = DEFAULT_TAX_RATE

    def fees_for(self, revenue: float) -> float:
        """Commission + payment fee + fixed fee for one order"""
        if revenue <= 0:
            return 0.0
        return (revenue * self.commission_percent / 100
                + revenue * self.payment_fee_percent / 100
                + self.fixed_fee)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_FEES: Dict[str, MarketplaceFees] = {
    'mercadolivre': MarketplaceFees(13, 4.99),
    'shopee': MarketplaceFees(14),
    'amazon': MarketplaceFees(15),
    'shopify': MarketplaceFees(0, 2.5),
    'magalu': MarketplaceFees(16),
    'shein': MarketplaceFees(12),
    'tiktok_shop': MarketplaceFees(5),
}

NO_FEES = MarketplaceFees(0)


def tax_rate_for(regime: Optional[str]) -> float:
    if not regime:
        return DEFAULT_TAX_RATE
    if regime not in TAX_REGIMES:
        raise ValueError(f"Unknown tax regime: {regime}")
    return TAX_REGIMES[regime]


# ============================================================================
# Expenses
# ============================================================================

def monthly_expense_amount(expense: Expense, month: Optional[date] = None) -> float:
    """
    Amount an expense weighs on one month

    Inactive expenses count as 0. For a given month, an expense that starts
    after it or ended before it also counts as 0.

    Args:
        expense: The expense
        month: Any date in the month being computed. None means a
            projection, where one-time expenses count as 0.
    """
    if not expense.is_active:
        return 0.0

    if month is not None:
        first_day = month.replace(day=1)
        last_day = month.replace(day=calendar.monthrange(month.year, month.month)[1])
        if expense.start_date and expense.start_date > last_day:
            return 0.0
        if expense.end_date and expense.end_date < first_day:
            return 0.0

    if expense.recurrence == Recurrence.WEEKLY:
        return expense.amount * WEEKS_PER_MONTH
    if expense.recurrence == Recurrence.YEARLY:
        return expense.amount / 12
    if expense.recurrence == Recurrence.ONE_TIME:
        if month is None or expense.start_date is None:
            return 0.0
        same_month = (expense.start_date.year, expense.start_date.month) == (month.year, month.month)
        return expense.amount if same_month else 0.0
    return expense.amount


def expenses_by_category(expenses: List[Expense], month: Optional[date] = None) -> Dict[str, float]:
    totals = {category: 0.0 for category in EXPENSE_CATEGORIES}
    for expense in expenses:
        category = expense.category if expense.category in totals else 'operational'
        totals[category] += monthly_expense_amount(expense, month)
    return {category: round(amount, 2) for category, amount in totals.items()}


# ============================================================================
# Breakdown
# ============================================================================

def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def order_product_cost(order: Order, cost_by_product: Dict[str, float]) -> float:
    """Cost price x quantity; 55% of the order total when no item has a cost"""
    cost = 0.0
    for item in order.items:
        unit_cost = cost_by_product.get(item.product_id) or cost_by_product.get(item.sku)
        if unit_cost:
            cost += unit_cost * (item.quantity or 1)

    if cost == 0 and order.total_value > 0:
        cost = order.total_value * FALLBACK_COST_RATIO
    return cost


def profit_breakdown(orders: List[Order], products: List[Product], expenses: List[Expense],
                     fees: Optional[Dict[str, MarketplaceFees]] = None,
                     tax_rate: float = DEFAULT_TAX_RATE,
                     month: Optional[date] = None) -> Dict[str, Any]:
    """
    Revenue to net profit for a set of orders

    Returns:
        Totals, margins, per-platform deductions and expenses by category
    """
    fees = fees or DEFAULT_FEES

    cost_by_product: Dict[str, float] = {}
    for product in products:
        if product.cost_price:
            cost_by_product[product.id] = product.cost_price
            if product.sku:
                cost_by_product[product.sku] = product.cost_price

    platforms: Dict[str, Dict[str, float]] = {}
    revenue = marketplace_fees = taxes = product_cost = 0.0

    for order in orders:
        order_revenue = order.total_value or 0
        platform = (order.platform or 'other').lower()

        order_fees = fees.get(platform, NO_FEES).fees_for(order_revenue)
        order_taxes = order_revenue * tax_rate / 100
        order_cost = order_product_cost(order, cost_by_product)

        revenue += order_revenue
        marketplace_fees += order_fees
        taxes += order_taxes
        product_cost += order_cost

        entry = platforms.setdefault(platform, {
            'platform': platform, 'revenue': 0.0, 'fees': 0.0, 'taxes': 0.0, 'orders': 0
        })
        entry['revenue'] += order_revenue
        entry['fees'] += order_fees
        entry['taxes'] += order_taxes
        entry['orders'] += 1

    by_category = expenses_by_category(expenses, month)
    total_expenses = sum(by_category.values())

    gross_profit = revenue - marketplace_fees - taxes - product_cost
    net_profit = gross_profit - total_expenses

    platform_breakdown = sorted(
        ({k: (round(v, 2) if isinstance(v, float) else v) for k, v in p.items()} for p in platforms.values()),
        key=lambda p: p['revenue'],
        reverse=True
    )

    return {
        'revenue': round(revenue, 2),
        'marketplace_fees': round(marketplace_fees, 2),
        'taxes': round(taxes, 2),
        'product_cost': round(product_cost, 2),
        'gross_profit': round(gross_profit, 2),
        'expenses': round(total_expenses, 2),
        'expenses_by_category': by_category,
        'net_profit': round(net_profit, 2),
        'gross_margin': _percent(gross_profit, revenue),
        'net_margin': _percent(net_profit, revenue),
        'deductions_percent': _percent(marketplace_fees + taxes + product_cost, revenue),
        'platforms': platform_breakdown,
        'order_count': len(orders)
    }


# ============================================================================
# Projection
# ============================================================================

def profit_projection(avg_daily_revenue: float, margin_percent: float, monthly_expenses: float,
                      multiplier: float = 100, custom_revenue: Optional[float] = None,
                      avg_order_value: Optional[float] = None) -> Dict[str, Any]:
    """
    Monthly profit simulation

    Args:
        avg_daily_revenue: Mean daily revenue of the last 30 days (0 = no history)
        margin_percent: Target gross margin (%)
        monthly_expenses: Recurring monthly expenses
        multiplier: Sales volume in % of the base (ignored with custom_revenue)
        custom_revenue: Explicit monthly revenue to simulate
        avg_order_value: Average ticket (250 when unknown)
    """
    if margin_percent <= 0:
        raise ValueError("Margin must be greater than zero")

    has_history = avg_daily_revenue > 0
    base_revenue = avg_daily_revenue * 30 if has_history else DEFAULT_BASE_REVENUE
    aov = avg_order_value if avg_order_value and avg_order_value > 0 else DEFAULT_AVG_ORDER_VALUE
    margin = margin_percent / 100

    def simulate(revenue: float) -> Dict[str, float]:
        gross = revenue * margin
        net = gross - monthly_expenses
        return {
            'revenue': round(revenue, 2),
            'gross_profit': round(gross, 2),
            'net_profit': round(net, 2),
            'net_margin': _percent(net, revenue)
        }

    simulated_revenue = custom_revenue if custom_revenue is not None else base_revenue * multiplier / 100
    break_even_revenue = monthly_expenses / margin

    result = simulate(simulated_revenue)
    result.update({
        'base_revenue': round(base_revenue, 2),
        'has_sales_history': has_history,
        'monthly_expenses': round(monthly_expenses, 2),
        'growth_vs_base': _percent(simulated_revenue - base_revenue, base_revenue),
        'break_even_revenue': round(break_even_revenue, 2),
        'break_even_orders': math.ceil(break_even_revenue / aov),
        'avg_order_value': round(aov, 2),
        'scenarios': [
            {'multiplier': m, **simulate(base_revenue * m / 100)}
            for m in SCENARIO_MULTIPLIERS
        ]
    })
    return result


# ============================================================================
# Marketing
# ============================================================================

def campaign_status(roas: float) -> str:
    if roas >= 3:
        return "Excelente"
    if roas >= 2:
        return "Bom"
    if roas >= 1:
        return "Atenção"
    return "Crítico"


def marketing_metrics(billing: float, gross_profit: float, ad_spend: float) -> Dict[str, Any]:
    """
    Ad efficiency indicators

    TACOS = ad spend / billing; ROI and ROAS relative to ad spend.
    Ratios are 0 when their denominator is 0.
    """
    profit_after_ads = gross_profit - ad_spend
    roas = billing / ad_spend if ad_spend > 0 else 0.0

    return {
        'billing': round(billing, 2),
        'marketplace_liquid': round(billing * MARKETPLACE_NET_RATIO, 2),
        'gross_profit': round(gross_profit, 2),
        'ad_spend': round(ad_spend, 2),
        'tacos': round(ad_spend / billing * 100, 2) if billing > 0 else 0.0,
        'roi': round((gross_profit - ad_spend) / ad_spend * 100, 2) if ad_spend > 0 else 0.0,
        'profit_after_ads': round(profit_after_ads, 2),
        'margin_after_ads': round(profit_after_ads / billing * 100, 2) if billing > 0 else 0.0,
        'roas': round(roas, 2),
        'status': campaign_status(roas)
    }


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class FinanceService:
    """Loads the user's data and runs the calculations above"""

    def __init__(self, order_repository: Optional[OrderRepository] = None,
                 product_repository: Optional[ProductRepository] = None,
                 expense_repository: Optional[ExpenseRepository] = None):
        self.orders = order_repository or OrderRepository()
        self.products = product_repository or ProductRepository()
        self.expenses = expense_repository or ExpenseRepository()

    def breakdown(self, user_id: str, month: Optional[date] = None, tax_regime: Optional[str] = None,
                  tax_rate: Optional[float] = None) -> Dict[str, Any]:
        """Profit breakdown for a calendar month (current month by default)"""
        month = month or utcnow().date()
        start = datetime(month.year, month.month, 1)
        next_month = datetime(month.year + (month.month // 12), month.month % 12 + 1, 1)
        end = next_month - timedelta(microseconds=1)

        rate = tax_rate if tax_rate is not None else tax_rate_for(tax_regime)

        orders = self.orders.find_by_user_between(user_id, start, end)
        products = self.products.find_by_user(user_id, limit=1000)
        expenses = self.expenses.find_by_user(user_id)

        logger.info(f"Profit breakdown for user {user_id}, {start:%Y-%m}: {len(orders)} orders")

        result = profit_breakdown(orders, products, expenses, tax_rate=rate, month=month)
        result['month'] = f"{start:%Y-%m}"
        result['tax_rate'] = rate
        return result

    def projection(self, user_id: str, margin_percent: float = 30, multiplier: float = 100,
                   custom_revenue: Optional[float] = None) -> Dict[str, Any]:
        """Projection based on the last 30 days of sales"""
        since = utcnow() - timedelta(days=30)
        orders = self.orders.find_by_user_since(user_id, since)
        expenses = self.expenses.find_by_user(user_id)

        total_revenue = sum(o.total_value or 0 for o in orders)
        avg_order_value = total_revenue / len(orders) if orders else None
        monthly_expenses = sum(monthly_expense_amount(e) for e in expenses)

        return profit_projection(
            avg_daily_revenue=total_revenue / 30,
            margin_percent=margin_percent,
            monthly_expenses=monthly_expenses,
            multiplier=multiplier,
            custom_revenue=custom_revenue,
            avg_order_value=avg_order_value
        )


_service_instance: Optional[FinanceService] = None


def get_finance_service() -> FinanceService:
    global _service_instance
    if _service_instance is None:
        _service_instance = FinanceService()
    return _service_instance

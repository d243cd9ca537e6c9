"""
Report Service - Downloadable sales and performance reports

Report types:
- sales: orders in the period with totals
- profitability: unit profit and margin per product
- marketplace_performance: orders and revenue grouped by platform
- trends: monthly revenue with month-over-month growth
- stock_forecast: sales rate and days until stockout per product
- roi_by_channel: revenue, cost, fees, profit and ROI per platform

Formats: CSV (UTF-8 with BOM, opens correctly in Excel) and XLSX
(data sheet + "Resumo" summary sheet).

Author: UNISTOCK
Date: 2025-11-20
"""
import csv
import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from unistock.repositories.order_repository import OrderRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.services.credentials_service import utcnow
from unistock.services.finance_service import DEFAULT_FEES, NO_FEES, order_product_cost

logger = logging.getLogger(__name__)

REPORT_TYPES = ('sales', 'profitability', 'marketplace_performance', 'trends',
                'stock_forecast', 'roi_by_channel')
PERIODS = ('last_7_days', 'last_30_days', 'last_month', 'last_3_months',
           'last_6_months', 'current_year', 'custom')
FORMATS = ('csv', 'xlsx')

CONTENT_TYPES = {
    'csv': 'text/csv; charset=utf-8',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

MONEY_FORMAT = '"R$" #,##0.00'
PERCENT_FORMAT = '0.00"%"'


@dataclass
class ReportFile:
    filename: str
    content: bytes
    media_type: str


# ============================================================================
# Periods
# ============================================================================

def _months_back(day: date, months: int) -> date:
    """Same day N months earlier (clamped to the month length)"""
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    next_month_first = date(year + month // 12, month % 12 + 1, 1)
    last_day = (next_month_first - timedelta(days=1)).day
    return date(year, month, min(day.day, last_day))


def date_range(period: str, custom_start: Optional[date] = None, custom_end: Optional[date] = None,
               today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Start and end (inclusive, whole days) for a period name

    Raises:
        ValueError: Unknown period or custom period without both dates
    """
    today = today or utcnow().date()
    end = today

    if period == 'last_7_days':
        start = today - timedelta(days=7)
    elif period == 'last_30_days':
        start = today - timedelta(days=30)
    elif period == 'last_month':
        first_of_month = today.replace(day=1)
        end = first_of_month - timedelta(days=1)
        start = end.replace(day=1)
    elif period == 'last_3_months':
        start = _months_back(today, 3)
    elif period == 'last_6_months':
        start = _months_back(today, 6)
    elif period == 'current_year':
        start = date(today.year, 1, 1)
    elif period == 'custom':
        if not custom_start or not custom_end:
            raise ValueError("Custom period requires start and end dates")
        start, end = custom_start, custom_end
    else:
        raise ValueError(f"Invalid period: {period}")

    return datetime.combine(start, time.min), datetime.combine(end, time.max)


# ============================================================================
# Report data
# ============================================================================

def _money(value: float) -> str:
    return f"R$ {value:.2f}"


class ReportService:
    """Service for building report data and exporting it"""

    def __init__(self, order_repository: Optional[OrderRepository] = None,
                 product_repository: Optional[ProductRepository] = None):
        self.orders = order_repository or OrderRepository()
        self.products = product_repository or ProductRepository()

    def sales(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        orders = self.orders.find_by_user_between(user_id, start, end)
        total_revenue = sum(o.total_value or 0 for o in orders)

        return {
            'type': 'sales',
            'summary': {
                'total_orders': len(orders),
                'total_revenue': round(total_revenue, 2),
                'average_order_value': round(total_revenue / len(orders), 2) if orders else 0
            },
            'orders': [
                {
                    'order_date': o.order_date.date().isoformat(),
                    'order_id_channel': o.order_id_channel,
                    'platform': o.platform,
                    'total_value': o.total_value or 0,
                    'items': o.item_count
                }
                for o in orders
            ]
        }

    def profitability(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        """Catalog-wide: unit profit = selling price - cost price"""
        rows = []
        for product in self.products.find_by_user(user_id, limit=10000):
            cost = product.cost_price or 0
            price = product.selling_price or 0
            profit = price - cost
            rows.append({
                'name': product.name,
                'sku': product.sku,
                'cost_price': cost,
                'selling_price': price,
                'profit': round(profit, 2),
                'margin': round(profit / price * 100, 2) if price > 0 else 0
            })

        return {
            'type': 'profitability',
            'summary': {
                'total_products': len(rows),
                'total_profit': round(sum(r['profit'] for r in rows), 2),
                'average_margin': round(sum(r['margin'] for r in rows) / len(rows), 2) if rows else 0
            },
            'products': rows
        }

    def marketplace_performance(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        orders = self.orders.find_by_user_between(user_id, start, end)

        grouped: Dict[str, Dict[str, float]] = {}
        for order in orders:
            entry = grouped.setdefault(order.platform or 'unknown', {'orders': 0, 'revenue': 0.0})
            entry['orders'] += 1
            entry['revenue'] += order.total_value or 0

        platforms = [
            {
                'platform': name,
                'total_orders': data['orders'],
                'total_revenue': round(data['revenue'], 2),
                'average_order_value': round(data['revenue'] / data['orders'], 2)
            }
            for name, data in sorted(grouped.items(), key=lambda item: item[1]['revenue'], reverse=True)
        ]

        return {
            'type': 'marketplace_performance',
            'summary': {
                'total_platforms': len(platforms),
                'total_orders': len(orders),
                'total_revenue': round(sum(o.total_value or 0 for o in orders), 2)
            },
            'platforms': platforms
        }

    def trends(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        orders = self.orders.find_by_user_between(user_id, start, end, ascending=True)

        monthly: Dict[str, Dict[str, float]] = {}
        for order in orders:
            entry = monthly.setdefault(f"{order.order_date:%Y-%m}", {'orders': 0, 'revenue': 0.0})
            entry['orders'] += 1
            entry['revenue'] += order.total_value or 0

        months = []
        previous = None
        for month in sorted(monthly):
            data = monthly[month]
            growth = 0.0
            if previous and previous['revenue'] > 0:
                growth = (data['revenue'] - previous['revenue']) / previous['revenue'] * 100
            months.append({
                'month': month,
                'total_orders': data['orders'],
                'total_revenue': round(data['revenue'], 2),
                'revenue_growth': round(growth, 2)
            })
            previous = data

        growths = [m['revenue_growth'] for m in months[1:]]
        return {
            'type': 'trends',
            'summary': {
                'total_months': len(months),
                'average_monthly_revenue': round(sum(m['total_revenue'] for m in months) / len(months), 2) if months else 0,
                'average_growth': round(sum(growths) / len(growths), 2) if growths else 0
            },
            'months': months
        }

    def stock_forecast(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        """Sales rate over the period; items match a product by id or SKU"""
        orders = self.orders.find_by_user_between(user_id, start, end)
        days = math.ceil((end - start).total_seconds() / 86400)

        rows = []
        for product in self.products.find_by_user(user_id, limit=10000):
            sold = sum(o.quantity_for(product.id, product.sku) for o in orders)
            rate = sold / days if days > 0 else 0
            stock = product.stock or 0
            days_left = math.floor(stock / rate) if rate > 0 else None

            if days_left is not None and days_left <= 7:
                status = 'CRÍTICO'
            elif days_left is not None and days_left <= 30:
                status = 'BAIXO'
            else:
                status = 'OK'

            rows.append({
                'name': product.name,
                'sku': product.sku,
                'current_stock': stock,
                'total_sold': sold,
                'daily_sales_rate': round(rate, 2),
                'days_until_stockout': days_left if days_left is not None else 'N/A',
                'recommended_reorder': math.ceil(rate * 30),
                'stock_status': status
            })

        return {
            'type': 'stock_forecast',
            'summary': {
                'total_products': len(rows),
                'critical_stock': sum(1 for r in rows if r['stock_status'] == 'CRÍTICO'),
                'low_stock': sum(1 for r in rows if r['stock_status'] == 'BAIXO')
            },
            'forecasts': rows
        }

    def roi_by_channel(self, user_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        """
        Return on product cost plus marketplace fees, per platform

        Product cost uses the same rules as the profit breakdown
        (cost price x quantity, 55% of the total without costs).
        """
        orders = self.orders.find_by_user_between(user_id, start, end)

        cost_by_product: Dict[str, float] = {}
        for product in self.products.find_by_user(user_id, limit=10000):
            if product.cost_price:
                cost_by_product[product.id] = product.cost_price
                if product.sku:
                    cost_by_product[product.sku] = product.cost_price

        grouped: Dict[str, Dict[str, float]] = {}
        for order in orders:
            platform = (order.platform or 'unknown').lower()
            revenue = order.total_value or 0
            entry = grouped.setdefault(platform, {'revenue': 0.0, 'cost': 0.0, 'fees': 0.0})
            entry['revenue'] += revenue
            entry['cost'] += order_product_cost(order, cost_by_product)
            entry['fees'] += DEFAULT_FEES.get(platform, NO_FEES).fees_for(revenue)

        channels = []
        for platform, data in sorted(grouped.items(), key=lambda item: item[1]['revenue'], reverse=True):
            invested = data['cost'] + data['fees']
            profit = data['revenue'] - invested
            channels.append({
                'platform': platform,
                'revenue': round(data['revenue'], 2),
                'cost': round(data['cost'], 2),
                'fees': round(data['fees'], 2),
                'profit': round(profit, 2),
                'roi': round(profit / invested * 100, 2) if invested > 0 else 0
            })

        return {
            'type': 'roi_by_channel',
            'summary': {
                'total_channels': len(channels),
                'total_revenue': round(sum(c['revenue'] for c in channels), 2),
                'total_profit': round(sum(c['profit'] for c in channels), 2),
                'average_roi': round(sum(c['roi'] for c in channels) / len(channels), 2) if channels else 0
            },
            'channels': channels
        }

    # ==================== EXPORT ====================

    @staticmethod
    def table(report: Dict[str, Any]) -> Dict[str, Any]:
        """
        Tabular layout of a report

        Returns:
            {'sheet', 'headers', 'rows', 'money_columns', 'percent_columns', 'summary'}
            where summary is a list of (label, value, kind) with kind
            'int', 'money' or 'percent'.
        """
        summary = report['summary']
        report_type = report['type']

        if report_type == 'sales':
            return {
                'sheet': 'Vendas',
                'headers': ['Data', 'ID do Pedido', 'Plataforma', 'Valor Total', 'Itens'],
                'rows': [[o['order_date'], o['order_id_channel'], o['platform'], o['total_value'], o['items']]
                         for o in report['orders']],
                'money_columns': [4],
                'percent_columns': [],
                'summary': [
                    ('Total de Pedidos', summary['total_orders'], 'int'),
                    ('Receita Total', summary['total_revenue'], 'money'),
                    ('Valor Médio do Pedido', summary['average_order_value'], 'money'),
                ]
            }

        if report_type == 'profitability':
            return {
                'sheet': 'Lucratividade',
                'headers': ['Produto', 'SKU', 'Preço de Custo', 'Preço de Venda', 'Lucro', 'Margem (%)'],
                'rows': [[p['name'], p['sku'], p['cost_price'], p['selling_price'], p['profit'], p['margin']]
                         for p in report['products']],
                'money_columns': [3, 4, 5],
                'percent_columns': [6],
                'summary': [
                    ('Total de Produtos', summary['total_products'], 'int'),
                    ('Lucro Total', summary['total_profit'], 'money'),
                    ('Margem Média', summary['average_margin'], 'percent'),
                ]
            }

        if report_type == 'marketplace_performance':
            return {
                'sheet': 'Marketplaces',
                'headers': ['Plataforma', 'Total de Pedidos', 'Receita Total', 'Valor Médio'],
                'rows': [[p['platform'], p['total_orders'], p['total_revenue'], p['average_order_value']]
                         for p in report['platforms']],
                'money_columns': [3, 4],
                'percent_columns': [],
                'summary': [
                    ('Total de Plataformas', summary['total_platforms'], 'int'),
                    ('Total de Pedidos', summary['total_orders'], 'int'),
                    ('Receita Total', summary['total_revenue'], 'money'),
                ]
            }

        if report_type == 'trends':
            return {
                'sheet': 'Tendências',
                'headers': ['Mês', 'Total de Pedidos', 'Receita Total', 'Crescimento (%)'],
                'rows': [[m['month'], m['total_orders'], m['total_revenue'], m['revenue_growth']]
                         for m in report['months']],
                'money_columns': [3],
                'percent_columns': [4],
                'summary': [
                    ('Total de Meses', summary['total_months'], 'int'),
                    ('Receita Média Mensal', summary['average_monthly_revenue'], 'money'),
                    ('Crescimento Médio', summary['average_growth'], 'percent'),
                ]
            }

        if report_type == 'stock_forecast':
            return {
                'sheet': 'Previsão Estoque',
                'headers': ['Produto', 'SKU', 'Estoque Atual', 'Vendidos', 'Vendas/Dia', 'Dias até Esgotar',
                            'Reposição Recomendada', 'Status'],
                'rows': [[f['name'], f['sku'], f['current_stock'], f['total_sold'], f['daily_sales_rate'],
                          f['days_until_stockout'], f['recommended_reorder'], f['stock_status']]
                         for f in report['forecasts']],
                'money_columns': [],
                'percent_columns': [],
                'summary': [
                    ('Total de Produtos', summary['total_products'], 'int'),
                    ('Estoque Crítico', summary['critical_stock'], 'int'),
                    ('Estoque Baixo', summary['low_stock'], 'int'),
                ]
            }

        if report_type == 'roi_by_channel':
            return {
                'sheet': 'ROI por Canal',
                'headers': ['Canal', 'Receita', 'Custo', 'Taxas', 'Lucro', 'ROI (%)'],
                'rows': [[c['platform'], c['revenue'], c['cost'], c['fees'], c['profit'], c['roi']]
                         for c in report['channels']],
                'money_columns': [2, 3, 4, 5],
                'percent_columns': [6],
                'summary': [
                    ('Total de Canais', summary['total_channels'], 'int'),
                    ('Receita Total', summary['total_revenue'], 'money'),
                    ('Lucro Total', summary['total_profit'], 'money'),
                    ('ROI Médio', summary['average_roi'], 'percent'),
                ]
            }

        raise ValueError(f"Unknown report type: {report_type}")

    @staticmethod
    def to_csv(table: Dict[str, Any]) -> bytes:
        output = io.StringIO()
        writer = csv.writer(output)

        money = set(table['money_columns'])
        percent = set(table['percent_columns'])

        writer.writerow(table['headers'])
        for row in table['rows']:
            formatted = []
            for col_num, value in enumerate(row, 1):
                if col_num in money:
                    value = _money(value or 0)
                elif col_num in percent:
                    value = f"{(value or 0):.2f}%"
                formatted.append('' if value is None else value)
            writer.writerow(formatted)

        writer.writerow([])
        writer.writerow(['Resumo:'])
        for label, value, kind in table['summary']:
            if kind == 'money':
                value = _money(value)
            elif kind == 'percent':
                value = f"{value:.2f}%"
            writer.writerow([label, value])

        # BOM so Excel detects UTF-8 accents
        return output.getvalue().encode('utf-8-sig')

    @staticmethod
    def to_xlsx(table: Dict[str, Any]) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = table['sheet']

        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True, size=12)
        border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        def write_headers(sheet, headers):
            for col_num, header in enumerate(headers, 1):
                cell = sheet.cell(row=1, column=col_num, value=header)
                cell.fill = header_fill
                cell.font = header_font
                cell.alignment = Alignment(horizontal='center', vertical='center')
                cell.border = border
                sheet.column_dimensions[get_column_letter(col_num)].width = max(15, len(header) + 4)
            sheet.freeze_panes = 'A2'

        write_headers(ws, table['headers'])

        money = set(table['money_columns'])
        percent = set(table['percent_columns'])
        for row_num, row in enumerate(table['rows'], 2):
            for col_num, value in enumerate(row, 1):
                cell = ws.cell(row=row_num, column=col_num, value=value)
                cell.border = border
                if col_num in money:
                    cell.number_format = MONEY_FORMAT
                    cell.alignment = Alignment(horizontal='right', vertical='center')
                elif col_num in percent:
                    cell.number_format = PERCENT_FORMAT
                    cell.alignment = Alignment(horizontal='right', vertical='center')
                else:
                    cell.alignment = Alignment(horizontal='left', vertical='center')

        summary_ws = wb.create_sheet("Resumo")
        write_headers(summary_ws, ['Métrica', 'Valor'])
        summary_ws.column_dimensions['A'].width = 30
        for row_num, (label, value, kind) in enumerate(table['summary'], 2):
            summary_ws.cell(row=row_num, column=1, value=label).border = border
            cell = summary_ws.cell(row=row_num, column=2, value=value)
            cell.border = border
            if kind == 'money':
                cell.number_format = MONEY_FORMAT
            elif kind == 'percent':
                cell.number_format = PERCENT_FORMAT

        excel_file = io.BytesIO()
        wb.save(excel_file)
        return excel_file.getvalue()

    # ==================== MAIN ====================

    def generate(self, user_id: str, report_type: str, period: str, fmt: str = 'csv',
                 custom_start: Optional[date] = None, custom_end: Optional[date] = None,
                 now: Optional[datetime] = None) -> ReportFile:
        """
        Build a report file

        Raises:
            ValueError: Unknown type, period or format
        """
        fmt = (fmt or 'csv').lower()
        if report_type not in REPORT_TYPES:
            raise ValueError(f"Invalid report type: {report_type}")
        if fmt not in FORMATS:
            raise ValueError(f"Invalid format: {fmt}")

        now = now or utcnow()
        start, end = date_range(period, custom_start, custom_end, today=now.date())

        logger.info(f"Generating {report_type} report ({period}, {fmt}) for user {user_id}")

        builders = {
            'sales': self.sales,
            'profitability': self.profitability,
            'marketplace_performance': self.marketplace_performance,
            'trends': self.trends,
            'stock_forecast': self.stock_forecast,
            'roi_by_channel': self.roi_by_channel,
        }
        report = builders[report_type](user_id, start, end)
        table = self.table(report)

        content = self.to_csv(table) if fmt == 'csv' else self.to_xlsx(table)
        filename = f"relatorio-{report_type}-{period}-{int(now.timestamp() * 1000)}.{fmt}"

        return ReportFile(filename=filename, content=content, media_type=CONTENT_TYPES[fmt])


_service_instance: Optional[ReportService] = None


def get_report_service() -> ReportService:
    global _service_instance
    if _service_instance is None:
        _service_instance = ReportService()
    return _service_instance

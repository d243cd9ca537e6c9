"""
Competitor Pricing Service - Comparative pricing across marketplaces

Guided three-step flow used by the market analysis screen:
1. categories - no category chosen yet: top categories for the term
2. variations - category chosen: variations found in result titles
3. analysis  - category and variation chosen: best offer per platform

Mercado Livre results come from the public search API. Shopee and Amazon
do not offer a public search, so offers are sampled inside realistic price
bands for the kind of product searched.

Author: UNISTOCK
Date: 2025-11-10
"""
import logging
import random
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from unistock.connectors.base import MarketplaceAPIError
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector

logger = logging.getLogger(__name__)

PLATFORM_ML = "Mercado Livre"
PLATFORM_SHOPEE = "Shopee"
PLATFORM_AMAZON = "Amazon"
PLATFORMS = (PLATFORM_ML, PLATFORM_SHOPEE, PLATFORM_AMAZON)

NEGATIVE_KEYWORDS = [
    'capa', 'película', 'suporte', 'adesivo', 'controle', 'peça', 'usado', 'case',
    'cabo', 'carregador', 'fonte', 'adaptador', 'protetor', 'skin', 'acessório', 'kit', 'peças'
]

REPUTABLE_SELLER_KEYWORDS = ['oficial', 'amazon', 'loja', 'magazine', 'casas', 'extra']

GENERIC_CATEGORY_IDS = ('main', 'accessories')

MLB_ID_PATTERN = re.compile(r'MLB-?(\d+)')

VARIATION_DICTIONARIES = {
    'capacity': ['4GB', '8GB', '16GB', '32GB', '64GB', '128GB', '256GB', '512GB', '1TB', '2TB', '4TB'],
    'color': [
        'preto', 'black', 'branco', 'white', 'azul', 'blue', 'verde', 'green',
        'rosa', 'pink', 'vermelho', 'red', 'dourado', 'gold', 'prata', 'silver',
        'cinza', 'gray', 'grey', 'titânio', 'titanium', 'natural', 'grafite',
        'graphite', 'midnight', 'starlight', 'space gray', 'rose gold', 'coral',
        'amarelo', 'yellow', 'roxo', 'purple', 'violeta', 'violet', 'laranja', 'orange'
    ],
    'model': ['pro', 'max', 'plus', 'mini', 'lite', 'standard', 'ultra', 'slim', 'air', 'se'],
    'size': ['6.1', '6.7', '5.4', '6.9', '13', '14', '15', '16', '17', '18', '19', '20', '21', '22', '24', '27', '32'],
}

MAX_CATEGORIES = 6
MAX_VARIATIONS = 8


@dataclass
class CompetitorOffer:
    """One offer found on a marketplace"""
    platform: str
    title: str
    price: float
    seller: str
    url: str
    sales_count: Optional[int] = None
    shipping_cost: Optional[float] = None
    image_url: Optional[str] = None
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# Pure helpers
# ============================================================================

def product_kind(search_term: str) -> str:
    """Coarse product family used for price filters and bands"""
    term = search_term.lower()
    if 'playstation' in term or 'xbox' in term or 'console' in term:
        return 'console'
    if 'iphone' in term or 'samsung galaxy' in term:
        return 'phone'
    if 'notebook' in term or 'laptop' in term:
        return 'notebook'
    return 'general'


MINIMUM_PRICE = {'console': 1000, 'phone': 800, 'notebook': 1200, 'general': 50}

# (min, max) sampled price bands
SHOPEE_PRICE_BANDS = {'console': (2800, 4500), 'phone': (1500, 3500), 'notebook': (2000, 6000), 'general': (100, 500)}
AMAZON_PRICE_BANDS = {'console': (3000, 5000), 'phone': (1800, 4000), 'notebook': (2500, 8000), 'general': (150, 800)}


def is_relevant_listing(title: str, price: float, search_term: str) -> bool:
    """Drop accessories and prices too low for the product family"""
    title = (title or '').lower()
    if any(keyword in title for keyword in NEGATIVE_KEYWORDS):
        return False

    kind = product_kind(search_term)
    if kind != 'general' and price < MINIMUM_PRICE[kind]:
        return False
    return price >= MINIMUM_PRICE['general']


def calculate_relevance_score(offer: CompetitorOffer, search_term: str) -> float:
    """
    Weighted keyword relevance of an offer (never negative)

    +10 x fraction of search words present in the title
    +5 reputable seller, +5 more than 50 sales (+2 more than 10),
    +3 free shipping
    """
    score = 0.0
    title = offer.title.lower()

    words = [w for w in search_term.lower().split(' ') if w] or [search_term.lower()]
    matching = [w for w in words if w in title]
    score += (len(matching) / len(words)) * 10

    seller = (offer.seller or '').lower()
    if any(keyword in seller for keyword in REPUTABLE_SELLER_KEYWORDS):
        score += 5

    if offer.sales_count and offer.sales_count > 50:
        score += 5
    elif offer.sales_count and offer.sales_count > 10:
        score += 2

    if offer.shipping_cost == 0:
        score += 3

    return score


def _capitalize(word: str) -> str:
    if word == 'space gray':
        return 'Space Gray'
    if word == 'rose gold':
        return 'Rose Gold'
    return word[:1].upper() + word[1:]


def detect_variation(title: str) -> Optional[str]:
    """Composite variation ("256GB Pro Preto") recognized in a listing title"""
    title = title.lower()
    parts: List[str] = []

    capacity = next((c for c in VARIATION_DICTIONARIES['capacity'] if c.lower() in title), None)
    if capacity:
        parts.append(capacity.upper())

    parts.extend(_capitalize(m) for m in VARIATION_DICTIONARIES['model'] if m in title)

    colors = [c for c in VARIATION_DICTIONARIES['color'] if c in title][:2]
    parts.extend(_capitalize(c) for c in colors)

    size = next((s for s in VARIATION_DICTIONARIES['size'] if f'{s}"' in title or f'{s} pol' in title), None)
    if size:
        parts.append(f'{size}"')

    variation = ' '.join(parts).strip()
    if 3 <= len(variation) <= 50:
        return variation
    return None


def fallback_variations(search_term: str) -> List[str]:
    term = search_term.lower()
    if 'iphone' in term:
        return ['128GB', '256GB', '512GB', '1TB']
    if 'samsung' in term:
        return ['128GB', '256GB', '512GB']
    if 'playstation' in term or 'ps5' in term:
        return ['Standard Edition', 'Digital Edition']
    if 'xbox' in term:
        return ['Series S', 'Series X']
    if 'notebook' in term or 'laptop' in term:
        return ['8GB RAM', '16GB RAM', '32GB RAM', 'SSD 256GB', 'SSD 512GB', 'SSD 1TB']
    return ['Modelo Padrão', 'Modelo Premium', 'Edição Especial']


def extract_variations(offers: List[CompetitorOffer], search_term: str) -> Dict[str, Any]:
    """Up to 8 distinct variations, with generic fallbacks per product family"""
    variations: List[str] = []
    for offer in offers:
        variation = detect_variation(offer.title)
        if variation and variation not in variations:
            variations.append(variation)

    variations = variations[:MAX_VARIATIONS] or fallback_variations(search_term)

    best = max(offers, key=lambda o: o.score, default=None)
    return {
        'product_title': best.title if best else search_term,
        'variations': variations
    }


def comparative_analysis(offers: List[CompetitorOffer], search_term: str) -> Dict[str, Any]:
    """Best scored offer per platform plus a price summary over those offers"""
    for offer in offers:
        offer.score = calculate_relevance_score(offer, search_term)

    analysis = []
    prices = []
    for platform in PLATFORMS:
        platform_offers = [o for o in offers if o.platform == platform]
        if not platform_offers:
            continue
        best = max(platform_offers, key=lambda o: o.score)
        analysis.append({
            'platform': platform,
            'best_offer': {
                'title': best.title,
                'price': best.price,
                'seller': best.seller,
                'link': best.url,
                'score': round(best.score, 2)
            }
        })
        prices.append(best.price)

    best_overall = max(offers, key=lambda o: o.score, default=None)

    return {
        'product_title': best_overall.title if best_overall else search_term,
        'analysis': analysis,
        'price_summary': {
            'lowest_price': min(prices) if prices else 0,
            'highest_price': max(prices) if prices else 0,
            'average_price': round(sum(prices) / len(prices), 2) if prices else 0
        }
    }


# ============================================================================
# Service
# ============================================================================

class CompetitorPricingService:
    """Service for the guided competitor price comparison"""

    def __init__(self, connector: Optional[MercadoLivreConnector] = None,
                 rng: Optional[random.Random] = None):
        """
        Args:
            connector: Mercado Livre connector (public endpoints, no token)
            rng: Random source for the sampled Shopee/Amazon offers
        """
        self.connector = connector or MercadoLivreConnector()
        self.rng = rng or random.Random()

    # ==================== SOURCES ====================

    async def search_mercadolivre(self, search_term: str, category: Optional[str] = None) -> List[CompetitorOffer]:
        if category in GENERIC_CATEGORY_IDS:
            category = None

        data = await self.connector.search(search_term, category=category, limit=10)

        offers = []
        for item in data.get('results') or []:
            price = item.get('price') or 0
            if not is_relevant_listing(item.get('title'), price, search_term):
                continue
            offers.append(CompetitorOffer(
                platform=PLATFORM_ML,
                title=item.get('title') or 'Produto sem título',
                price=price,
                seller=(item.get('seller') or {}).get('nickname') or 'Vendedor não informado',
                sales_count=item.get('sold_quantity') or None,
                shipping_cost=0 if (item.get('shipping') or {}).get('free_shipping') else None,
                url=item.get('permalink') or 'https://www.mercadolivre.com.br',
                image_url=item.get('thumbnail')
            ))
        return offers

    def _sample_price(self, band) -> int:
        low, high = band
        return self.rng.randrange(low, high)

    def sample_shopee(self, search_term: str) -> List[CompetitorOffer]:
        band = SHOPEE_PRICE_BANDS[product_kind(search_term)]
        url = f"https://shopee.com.br/search?keyword={quote_plus(search_term)}"
        return [
            CompetitorOffer(PLATFORM_SHOPEE, f"{search_term} - Shopee Original", self._sample_price(band),
                            "Shopee Seller", url, sales_count=self.rng.randint(10, 209)),
            CompetitorOffer(PLATFORM_SHOPEE, f"{search_term} - Premium Edition", self._sample_price(band) + 200,
                            "Premium Store", url, sales_count=self.rng.randint(5, 154)),
        ]

    def sample_amazon(self, search_term: str) -> List[CompetitorOffer]:
        band = AMAZON_PRICE_BANDS[product_kind(search_term)]
        url = f"https://www.amazon.com.br/s?k={quote_plus(search_term)}"
        return [
            CompetitorOffer(PLATFORM_AMAZON, f"{search_term} - Amazon's Choice", self._sample_price(band),
                            "Amazon", url, sales_count=self.rng.randint(50, 549)),
            CompetitorOffer(PLATFORM_AMAZON, f"{search_term} - Prime Delivery", self._sample_price(band) - 100,
                            "Prime Seller", url, sales_count=self.rng.randint(20, 319)),
        ]

    async def collect_offers(self, search_term: str, category: Optional[str] = None) -> List[CompetitorOffer]:
        """All platforms; a failing source is logged and left out"""
        offers: List[CompetitorOffer] = []
        try:
            offers.extend(await self.search_mercadolivre(search_term, category))
        except Exception as e:
            logger.error(f"Mercado Livre search failed for '{search_term}': {e}")

        offers.extend(self.sample_shopee(search_term))
        offers.extend(self.sample_amazon(search_term))
        return offers

    async def extract_categories(self, search_term: str) -> Dict[str, Any]:
        """Top categories for the term from the search filters"""
        try:
            data = await self.connector.search(search_term, limit=1, condition=None)
            categories = []
            for search_filter in data.get('available_filters') or []:
                if search_filter.get('id') != 'category':
                    continue
                for value in search_filter.get('values') or []:
                    categories.append({
                        'id': value.get('id'),
                        'name': value.get('name'),
                        'count': value.get('results') or 0
                    })
            categories.sort(key=lambda c: c['count'], reverse=True)
            return {'product_title': search_term, 'categories': categories[:MAX_CATEGORIES]}

        except Exception as e:
            logger.warning(f"Category lookup failed for '{search_term}', using generic categories: {e}")
            return {
                'product_title': search_term,
                'categories': [
                    {'id': 'main', 'name': 'Produto Principal', 'count': 100},
                    {'id': 'accessories', 'name': 'Acessórios', 'count': 50}
                ]
            }

    async def analyze_url(self, url: str) -> Dict[str, Any]:
        """Single Mercado Livre item given by its URL"""
        match = MLB_ID_PATTERN.search(url)
        if not match:
            raise ValueError("Formato de URL não suportado. Apenas URLs do Mercado Livre são suportadas.")

        item_id = f"MLB{match.group(1)}"
        item = await self.connector.get_item(item_id)

        seller_name = 'Vendedor não informado'
        if item.get('seller_id'):
            try:
                seller = await self.connector.get_user(str(item['seller_id']))
                seller_name = seller.get('nickname') or seller_name
            except MarketplaceAPIError as e:
                logger.warning(f"Could not fetch seller {item['seller_id']}: {e.status_code}")

        offer = CompetitorOffer(
            platform=PLATFORM_ML,
            title=item.get('title') or item_id,
            price=item.get('price') or 0,
            seller=seller_name,
            sales_count=item.get('sold_quantity') or None,
            shipping_cost=0 if (item.get('shipping') or {}).get('free_shipping') else None,
            url=item.get('permalink') or url,
            image_url=item.get('thumbnail')
        )
        return comparative_analysis([offer], offer.title)

    # ==================== MAIN ====================

    async def compare(self, search_term: str, category: Optional[str] = None,
                      variation: Optional[str] = None) -> Dict[str, Any]:
        """
        Run the step that matches the user's choices so far

        Returns:
            {'step': 'categories'|'variations'|'analysis', 'data': {...}}

        Raises:
            ValueError: Empty term or unsupported URL
            LookupError: No offer found
        """
        search_term = (search_term or '').strip()
        if not search_term:
            raise ValueError("Termo de busca é obrigatório")

        if search_term.startswith('http'):
            return {'step': 'analysis', 'data': await self.analyze_url(search_term)}

        final_term = f"{search_term} {variation}" if variation else search_term
        offers = await self.collect_offers(final_term, category)
        if not offers:
            raise LookupError("Nenhum resultado encontrado para este termo de busca")

        if not category and not variation:
            return {'step': 'categories', 'data': await self.extract_categories(search_term)}

        if category and not variation:
            for offer in offers:
                offer.score = calculate_relevance_score(offer, search_term)
            return {'step': 'variations', 'data': extract_variations(offers, search_term)}

        return {'step': 'analysis', 'data': comparative_analysis(offers, final_term)}

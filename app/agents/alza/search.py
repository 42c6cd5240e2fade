# app/agents/alza/search.py
import json
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from app.agents.alza import endpoints
from app.agents.alza.errors import AlzaError
from app.agents.alza.helpers import as_float, as_int, as_str, decode_object, dig, extract_product_id, parse_price
from app.agents.alza.models import SearchResult, Session
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

ANONYMOUS_VISITOR = "00000000-0000-0000-0000-000000000000"

SearchStrategy = Tuple[str, Callable[[Session, str, int], Awaitable[List[SearchResult]]]]


class SearchAggregator:
    """
    Product search with a fallback source.

    The v5 search endpoint is tried first; when it fails or finds nothing the
    whisperer (suggestion) endpoint is asked instead.
    """

    def __init__(self, transport: Transport, country: str = 'SK'):
        self.transport = transport
        self.country = country

    @property
    def strategies(self) -> List[SearchStrategy]:
        return [
            ('search v5', self.search_primary),
            ('whisperer', self.search_whisperer),
        ]

    async def search(self, session: Session, term: str, limit: int = 10) -> List[SearchResult]:
        primary_results: Optional[List[SearchResult]] = None
        errors: List[Tuple[str, AlzaError]] = []

        for index, (name, strategy) in enumerate(self.strategies):
            try:
                results = await strategy(session, term, limit)
            except AlzaError as e:
                logger.debug(f"{name} failed: {e}")
                errors.append((name, e))
                continue

            if results:
                return results
            logger.debug(f"{name} returned no items")
            if index == 0:
                primary_results = results

        if primary_results is not None:
            return primary_results
        if len(errors) == len(self.strategies):
            raise AlzaError('; '.join(f"{name} failed: {err}" for name, err in errors))
        # Primary failed, fallback found nothing
        raise errors[0][1]

    async def search_primary(self, session: Session, term: str, limit: int) -> List[SearchResult]:
        data = await self.transport.post(endpoints.SEARCH_SERVICE, json.dumps({'searchTerm': term}))
        doc = decode_object(data, 'search')

        results = []
        for item in doc.get('data2') or []:
            price_text = as_str(item.get('price'))
            price = as_float(item.get('priceNoCurrency'))
            if price == 0:
                price = parse_price(price_text)
            results.append(SearchResult(
                id=as_int(item.get('id')),
                name=as_str(item.get('name')),
                code=as_str(item.get('code')),
                price=price,
                price_text=price_text,
                availability=as_str(item.get('avail')),
                image_url=as_str(item.get('img')),
                url=as_str(item.get('url')),
            ))
            if len(results) >= limit:
                break
        return results

    async def search_whisperer(self, session: Session, term: str, limit: int) -> List[SearchResult]:
        endpoint = endpoints.WHISPER_ANON
        if session.user_id:
            endpoint = endpoints.WHISPER_USER.format(user_id=session.user_id)

        params = {
            'country': self.country,
            'eshopUrl': endpoints.BASE_URL + '/',
            'searchTerm': term,
            'visitor': ANONYMOUS_VISITOR,
        }
        data = await self.transport.get(endpoint, params=params)
        doc = decode_object(data, 'whisper search')

        results = []
        for item in doc.get('commodities') or []:
            link = as_str(dig(item, ('clickAction', 'webLink'), '')) or as_str(dig(item, ('clickAction', 'href'), ''))
            price_text = as_str(item.get('price'))
            results.append(SearchResult(
                id=extract_product_id(link),
                name=as_str(dig(item, ('clickAction', 'name'), '')),
                price=parse_price(price_text),
                price_text=price_text,
                image_url=as_str(item.get('imageUrl')),
                url=link,
            ))
            if len(results) >= limit:
                break
        return results

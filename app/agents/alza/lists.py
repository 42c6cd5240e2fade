# app/agents/alza/lists.py
import json
import logging
from typing import List, Optional, Sequence

from app.agents.alza import endpoints
from app.agents.alza.config import Config
from app.agents.alza.errors import AlzaError, ListNotFound, OperationFailed
from app.agents.alza.helpers import as_int, as_str, decode_object, dig
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.models import CommodityList, ListItem, Session
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_FAVORITES_NAMES = ('AGENT', 'AGENTS')
FAVORITES_LIST_TYPE = 1


def _parse_list(raw: dict) -> CommodityList:
    return CommodityList(
        id=as_int(raw.get('id')),
        name=as_str(raw.get('name')),
        item_count=as_int(raw.get('itemCount')),
        type=as_int(raw.get('type')),
        can_modify=bool(raw.get('canModify')),
    )


def pick_favorites_list(lists: Sequence[CommodityList], preferred: Optional[str] = None) -> CommodityList:
    """
    Resolve the list used as "favorites".

    ``preferred`` (ALZA_FAVORITES_LIST) is tried first, then AGENT and AGENTS.
    Names match case-insensitively.
    """
    names = []
    if preferred and preferred.strip():
        names.append(preferred.strip())
    names.extend(DEFAULT_FAVORITES_NAMES)

    for name in names:
        for commodity_list in lists:
            if commodity_list.name.lower() == name.lower():
                return commodity_list
    raise ListNotFound("favorites list not found (set ALZA_FAVORITES_LIST or create list named AGENT)")


class ListManager:
    """Commodity lists and the favorites watchlist."""

    def __init__(self, transport: Transport, identity: IdentityResolver):
        self.transport = transport
        self.identity = identity

    async def get_lists(self, session: Session) -> List[CommodityList]:
        data = await self.transport.get(endpoints.COMMODITY_LISTS)
        doc = decode_object(data, 'lists')

        user_id = as_int(doc.get('user_id'))
        if user_id > 0:
            session.user_id = str(user_id)

        return [_parse_list(raw) for raw in doc.get('data') or []]

    async def get_list_items(self, list_id: int) -> List[ListItem]:
        data = await self.transport.get(endpoints.COMMODITY_LIST_ITEMS.format(list_id=list_id))
        doc = decode_object(data, 'list items')

        lists = doc.get('data') or []
        if not lists:
            raise ListNotFound("list not found")

        return [
            ListItem(
                navigation_url=as_str(raw.get('navigationUrl')),
                count=as_int(raw.get('count')),
                price=as_str(dig(raw, ('priceInfoV2', 'priceWithVat'), '')),
            )
            for raw in lists[0].get('items') or []
        ]

    async def create_list(self, name: str) -> CommodityList:
        data = await self.transport.post(endpoints.COMMODITY_LIST_CREATE, json.dumps({'name': name, 'type': 0}))
        doc = decode_object(data, 'response')

        created = doc.get('data') or []
        if not created:
            raise AlzaError("no list returned in response")
        return _parse_list(created[0])

    async def add_to_list(self, list_id: int, product_id: int):
        body = json.dumps({'listID': list_id, 'cId': product_id, 'path': '', 'pageType': 0})
        await self.transport.post(endpoints.COMMODITY_LIST_ADD_ITEM, body)

    async def remove_from_list(self, list_id: int, product_id: int):
        body = json.dumps({'id': list_id, 'productId': product_id})
        await self.transport.post(endpoints.COMMODITY_LIST_DELETE, body)

    async def add_to_favorites(self, session: Session, product_id: int):
        user_id = await self.identity.resolve_identity(session)
        body = json.dumps({
            'items': {str(product_id): 1},
            'listType': FAVORITES_LIST_TYPE,
            'country': 'SK',
        })
        data = await self.transport.post(endpoints.USER_COMMODITY_LIST_ITEMS.format(user_id=user_id), body)
        doc = decode_object(data, 'response')
        if not doc.get('IsSuccess'):
            raise OperationFailed('add to favorites', as_str(doc.get('ErrorMessage')))

    async def resolve_favorites(self, session: Session, preferred: Optional[str] = None) -> CommodityList:
        lists = await self.get_lists(session)
        return pick_favorites_list(lists, preferred if preferred is not None else Config.FAVORITES_LIST)

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from models.card import CardContainerType, CollectionLayoutStyle, card_to_dict
from models.errors import MoveOutcome
from services.card_registry import CardSystemRegistry
from services.card_system import CardSystem


def get_registry() -> CardSystemRegistry:
    from main import registry

    return registry


router = APIRouter(prefix="/api/projects/{project_id}")


def _system(project_id: str, reg: CardSystemRegistry) -> CardSystem:
    system = reg.get(project_id)
    if system is None:
        raise HTTPException(status_code=404, detail='Project not found')
    return system


def _require_card(system: CardSystem, card_id: str):
    card = system.find(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail='Card not found')
    return card


def _container_type(body: dict) -> CardContainerType:
    try:
        return CardContainerType(body.get('containerType', ''))
    except ValueError:
        raise HTTPException(status_code=400, detail='containerType must be editor|collection')


def _new_card_fields(body: dict) -> dict:
    props = body.get('props')
    if props is not None and not (
        isinstance(props, list) and all(isinstance(p, dict) and isinstance(p.get('name'), str) for p in props)
    ):
        raise HTTPException(status_code=400, detail='props must be a list of {name, value}')
    for key in ('title', 'tag', 'type'):
        if body.get(key) is not None and not isinstance(body[key], str):
            raise HTTPException(status_code=400, detail=f'{key} must be a string')
    return {
        'title': body.get('title'),
        'hide_title': bool(body.get('hideTitle', False)),
        'props': props,
        'tag': body.get('tag'),
        'type': body.get('type'),
    }


@router.get('/cards')
def list_cards(project_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    return _system(project_id, reg).snapshot()


@router.post('/cards')
def create_card(project_id: str, body: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    card = system.add_card(_container_type(body), **_new_card_fields(body))
    return card_to_dict(card)


@router.post('/cards/move')
def move_card(project_id: str, body: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    try:
        drag_index = int(body['dragIndex'])
        hover_index = int(body['hoverIndex'])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=400, detail='dragIndex and hoverIndex must be integers')
    result = system.move_card(drag_index, hover_index, body.get('dragParentId'), body.get('hoverParentId'))
    if result.outcome is MoveOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail={"outcome": result.outcome.value})
    if not result.ok:
        raise HTTPException(status_code=409, detail={"outcome": result.outcome.value})
    return {"outcome": result.outcome.value, "cards": system.snapshot()}


@router.get('/cards/{card_id}')
def get_card(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    return card_to_dict(_require_card(_system(project_id, reg), card_id))


@router.get('/cards/{card_id}/buttons')
def get_card_buttons(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    return asdict(system.buttons_for(card_id))


@router.post('/cards/{card_id}/children')
def create_child_card(project_id: str, card_id: str, body: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    card = system.add_child_card(card_id, _container_type(body), **_new_card_fields(body))
    if card is None:
        raise HTTPException(status_code=409, detail='Only collection cards accept children')
    return card_to_dict(system.find(card.id))


@router.patch('/cards/{card_id}')
def update_card(project_id: str, card_id: str, patch: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    system.update_card(card_id, patch)
    return card_to_dict(system.find(card_id))


@router.delete('/cards/{card_id}')
def delete_card(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    return {"deleted": _system(project_id, reg).delete_card(card_id)}


@router.put('/cards/{card_id}/related')
def relate_card(project_id: str, card_id: str, item: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    if not item.get('id'):
        raise HTTPException(status_code=400, detail='related item id required')
    system.relate_card(card_id, item)
    return card_to_dict(system.find(card_id))


@router.delete('/cards/{card_id}/related')
def unrelate_card(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    system.unrelate_card(card_id)
    return card_to_dict(system.find(card_id))


@router.put('/cards/{card_id}/layout')
def change_layout_style(project_id: str, card_id: str, body: dict, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    try:
        style = CollectionLayoutStyle(body.get('layoutStyle', ''))
    except ValueError:
        raise HTTPException(status_code=400, detail='layoutStyle must be vertical|horizontal|adaptive')
    system.change_layout_style(card_id, style)
    return card_to_dict(system.find(card_id))


@router.post('/cards/{card_id}/collapse')
def toggle_collapse(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    system.toggle_collapse(card_id)
    return card_to_dict(system.find(card_id))


@router.post('/cards/{card_id}/visibility')
def toggle_visibility(project_id: str, card_id: str, reg: CardSystemRegistry = Depends(get_registry)):
    system = _system(project_id, reg)
    _require_card(system, card_id)
    system.toggle_visibility(card_id)
    return card_to_dict(system.find(card_id))

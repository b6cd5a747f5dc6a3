_BUTTON_FLAGS = {
    "showEditButton": {"type": "boolean"},
    "showAddButton": {"type": "boolean"},
    "showDeleteButton": {"type": "boolean"},
    "showRelateButton": {"type": "boolean"},
    "showLayoutStyleButton": {"type": "boolean"},
    "showVisibilityButton": {"type": "boolean"},
}

_COMMON = {
    "id": {"type": "string"},
    "title": {"type": "string"},
    "tag": {"type": "string"},
    "type": {"type": "string"},
    "parent": {"type": "string"},
    "isCollapsed": {"type": "boolean"},
    "isVisible": {"type": "boolean"},
    "hideTitle": {"type": "boolean"},
    "props": {
        "type": "array",
        "items": {"type": "object", "required": ["name"], "properties": {"name": {"type": "string"}, "value": {"type": "string"}}},
    },
    "relatedItem": {"$ref": "#/$defs/relatedItem"},
    "createdAt": {"type": "string", "format": "date-time"},
    "updatedAt": {"type": "string", "format": "date-time"},
    **_BUTTON_FLAGS,
}

CARD_SCHEMA = {
    "$defs": {
        "relatedItem": {
            "type": "object",
            "required": ["id", "title", "type"],
            "properties": {
                "id": {"type": "string"},
                "title": {"type": "string"},
                "type": {"type": "string", "examples": ["chapter", "volume"]},
                "isExternal": {"type": "boolean"},
            },
        },
        "editorCard": {
            "type": "object",
            "required": ["id", "title", "containerType"],
            "properties": {**_COMMON, "containerType": {"const": "editor"}, "content": {"type": "string"}},
            "not": {"required": ["childCards"]},
        },
        "collectionCard": {
            "type": "object",
            "required": ["id", "title", "containerType"],
            "properties": {
                **_COMMON,
                "containerType": {"const": "collection"},
                "layoutStyle": {"type": "string", "enum": ["vertical", "horizontal", "adaptive"]},
                "childCards": {"type": "array", "items": {"$ref": "#"}},
            },
            "not": {"required": ["content"]},
        },
    },
    "oneOf": [{"$ref": "#/$defs/editorCard"}, {"$ref": "#/$defs/collectionCard"}],
}

NEW_CARD_SCHEMA = {
    "type": "object",
    "required": ["containerType"],
    "properties": {
        "containerType": {"type": "string", "enum": ["editor", "collection"]},
        "title": {"type": "string"},
        "hideTitle": {"type": "boolean"},
        "tag": {"type": "string"},
        "type": {"type": "string"},
        "props": _COMMON["props"],
    },
}

MOVE_REQUEST_SCHEMA = {
    "type": "object",
    "required": ["dragIndex", "hoverIndex"],
    "properties": {
        "dragIndex": {"type": "integer", "minimum": 0},
        "hoverIndex": {"type": "integer"},
        "dragParentId": {"type": ["string", "null"], "description": "card id, or null/'root' for the top level"},
        "hoverParentId": {"type": ["string", "null"], "description": "card id, or null/'root' for the top level"},
    },
}

SCHEMAS = {
    "card": CARD_SCHEMA,
    "new_card": NEW_CARD_SCHEMA,
    "move": MOVE_REQUEST_SCHEMA,
}

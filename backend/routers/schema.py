from fastapi import APIRouter, HTTPException

from schemas.json_schemas import SCHEMAS

router = APIRouter(prefix="/api/schema")


@router.get('')
def schema_names():
    return {"schemas": list(SCHEMAS.keys())}


@router.get('/{name}')
def get_schema(name: str):
    if name not in SCHEMAS:
        raise HTTPException(status_code=404, detail="Unknown schema")
    return SCHEMAS[name]

"""Generic record routes over the local store.

Writes go through LocalStore, so changes to tracked tables are captured
for the next push. Unknown tables and SQLite errors surface as 400.
"""
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from bizsync.api.routes.deps import get_store
from bizsync.store.local_store import LocalStore

router = APIRouter()


class QueryRequest(BaseModel):
    sql: str
    params: List[Any] = []


# Registered before the /{table_name} routes so "query" is never taken as a table
@router.post("/query")
def run_query(request: QueryRequest, store: LocalStore = Depends(get_store)):
    """Run an ad-hoc statement with ? placeholders. Not change-tracked."""
    result: Union[List[Dict[str, Any]], int] = store.raw(request.sql, request.params)
    if isinstance(result, int):
        return {"rowcount": result}
    return {"rows": result}


@router.get("/{table_name}")
def list_records(
    table_name: str,
    company_id: Optional[str] = None,
    store: LocalStore = Depends(get_store),
):
    return store.get_all(table_name, company_id)


@router.get("/{table_name}/{record_id}")
def get_record(table_name: str, record_id: str, store: LocalStore = Depends(get_store)):
    row = store.get_by_id(table_name, record_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return row


@router.post("/{table_name}")
def create_record(
    table_name: str,
    fields: Dict[str, Any],
    store: LocalStore = Depends(get_store),
):
    return store.insert(table_name, fields)


@router.patch("/{table_name}/{record_id}")
def update_record(
    table_name: str,
    record_id: str,
    fields: Dict[str, Any],
    store: LocalStore = Depends(get_store),
):
    row = store.update(table_name, record_id, fields)
    if row is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return row


@router.delete("/{table_name}/{record_id}")
def delete_record(table_name: str, record_id: str, store: LocalStore = Depends(get_store)):
    if not store.delete(table_name, record_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return {"deleted": True}

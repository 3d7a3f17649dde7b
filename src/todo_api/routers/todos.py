from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..dao import ToDoItemDAO
from ..exceptions import NotFoundError
from ..models import ToDoItem
from ..schemas import ToDoItemIn

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)


def get_dao(request: Request) -> ToDoItemDAO:
    """
    Dependency returning the DAO built by the app lifespan, bound to the
    collections that lifespan provisioned.
    """
    return request.app.state.dao


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=ToDoItem,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new to-do item with a freshly allocated id and return it.",
    responses={
        201: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
    },
)
async def create_todo(payload: ToDoItemIn, dao: ToDoItemDAO = Depends(get_dao)) -> ToDoItem:
    """
    Create a new to-do item.
    """
    item = payload.to_item()
    await dao.insert(item)
    return item


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[ToDoItem],
    summary="List Todos",
    description="List every to-do item. No particular order is guaranteed.",
)
async def list_todos(dao: ToDoItemDAO = Depends(get_dao)) -> List[ToDoItem]:
    return await dao.list_all()


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=ToDoItem,
    summary="Get Todo",
    description="Get a single to-do item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
async def get_todo(todo_id: int, dao: ToDoItemDAO = Depends(get_dao)) -> ToDoItem:
    """
    Retrieve a single to-do item by its ID.
    """
    try:
        return await dao.find_by_id(todo_id)
    except NotFoundError:
        raise _not_found()


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=ToDoItem,
    summary="Replace Todo",
    description=(
        "Replace an existing to-do item. Omitted tags and deadline are cleared."
    ),
    responses={
        200: {"description": "Todo replaced"},
        404: {"description": "Todo not found"},
    },
)
async def put_todo(todo_id: int, payload: ToDoItemIn, dao: ToDoItemDAO = Depends(get_dao)) -> ToDoItem:
    """
    Full replacement. The DAO reports False both for a missing id and for an
    unchanged document, so a False result is followed by a lookup that tells
    the two apart.
    """
    item = payload.to_item(todo_id)
    if await dao.update(item):
        return item
    try:
        return await dao.find_by_id(todo_id)
    except NotFoundError:
        raise _not_found()


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a to-do item by ID.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
async def delete_todo(todo_id: int, dao: ToDoItemDAO = Depends(get_dao)) -> None:
    """
    Delete a to-do item. Returns 204 on success, 404 if not found.
    """
    if not await dao.remove_by_id(todo_id):
        raise _not_found()
    return None

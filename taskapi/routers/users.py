from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import handlers
from ..api.deps import ListQuery, parse_select, user_list_query
from ..api.responses import dump, envelope
from ..db_models import UserDB
from ..errors import NotFound, describe_failure
from ..models import User, UserIn
from ..store_db import USER_FIELDS, count_documents, get_db, get_user as db_get_user, list_documents

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(q: ListQuery = Depends(user_list_query), db: Session = Depends(get_db)):
    with describe_failure("fetching users"):
        total = count_documents(db, UserDB, USER_FIELDS, where=q.where)
        if q.count:
            return envelope("OK", total)
        rows = list_documents(
            db, UserDB, USER_FIELDS,
            where=q.where, sort=q.sort, skip=q.skip, limit=q.limit,
        )
    return envelope(
        "OK",
        [dump(User, row, q.select) for row in rows],
        headers={"X-Total-Count": str(total)},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(item: UserIn, db: Session = Depends(get_db)):
    with describe_failure("creating user"):
        user = handlers.create_user(db, item)
    return envelope(
        "User created successfully",
        dump(User, user),
        status_code=status.HTTP_201_CREATED,
        headers={"Location": f"/api/v1/users/{user.id}"},
    )


@router.get("/{user_id}")
def get_user(user_id: str, select: dict = Depends(parse_select), db: Session = Depends(get_db)):
    with describe_failure("fetching user"):
        user = db_get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return envelope("OK", dump(User, user, select))


@router.put("/{user_id}")
def put_user(user_id: str, item: UserIn, db: Session = Depends(get_db)):
    with describe_failure("updating user"):
        user = handlers.update_user(db, user_id, item)
    return envelope("User updated successfully", dump(User, user))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    with describe_failure("deleting user"):
        handlers.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

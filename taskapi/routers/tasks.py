from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import handlers
from ..api.deps import ListQuery, parse_select, task_list_query
from ..api.responses import dump, envelope
from ..db_models import TaskDB
from ..errors import NotFound, describe_failure
from ..models import Task, TaskIn
from ..store_db import TASK_FIELDS, count_documents, get_db, get_task as db_get_task, list_documents

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
def list_tasks(q: ListQuery = Depends(task_list_query), db: Session = Depends(get_db)):
    with describe_failure("fetching tasks"):
        total = count_documents(db, TaskDB, TASK_FIELDS, where=q.where)
        if q.count:
            return envelope("OK", total)
        rows = list_documents(
            db, TaskDB, TASK_FIELDS,
            where=q.where, sort=q.sort, skip=q.skip, limit=q.limit,
        )
    return envelope(
        "OK",
        [dump(Task, row, q.select) for row in rows],
        headers={"X-Total-Count": str(total)},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(item: TaskIn, db: Session = Depends(get_db)):
    with describe_failure("creating task"):
        task = handlers.create_task(db, item)
    return envelope(
        "Task created successfully",
        dump(Task, task),
        status_code=status.HTTP_201_CREATED,
        headers={"Location": f"/api/v1/tasks/{task.id}"},
    )


@router.get("/{task_id}")
def get_task(task_id: str, select: dict = Depends(parse_select), db: Session = Depends(get_db)):
    with describe_failure("fetching task"):
        task = db_get_task(db, task_id)
    if task is None:
        raise NotFound("Task not found")
    return envelope("OK", dump(Task, task, select))


@router.put("/{task_id}")
def put_task(task_id: str, item: TaskIn, db: Session = Depends(get_db)):
    with describe_failure("updating task"):
        task = handlers.update_task(db, task_id, item)
    return envelope("Task updated successfully", dump(Task, task))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, db: Session = Depends(get_db)):
    with describe_failure("deleting task"):
        handlers.delete_task(db, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# tests/test_users_api.py
# PURPOSE: user CRUD, email uniqueness, and the task assignment kept in sync by each user write.


def _put_user(client, user, **changes):
    body = {"name": user["name"], "email": user["email"], "pendingTasks": user["pendingTasks"]}
    body.update(changes)
    return client.put(f"/api/v1/users/{user['_id']}", json=body)


def test_create_user_defaults(client):
    r = client.post("/api/v1/users", json={"name": "Alice", "email": "alice@example.com"})
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "User created successfully"
    user = body["data"]
    assert user["_id"]
    assert user["pendingTasks"] == []
    assert user["dateCreated"]


def test_create_requires_name_and_email(client):
    r = client.post("/api/v1/users", json={"name": "No email"})
    assert r.status_code == 400
    assert r.json() == {"message": "User name and email are required", "data": {}}


def test_create_rejects_malformed_email(client):
    r = client.post("/api/v1/users", json={"name": "Bad", "email": "not-an-email"})
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid user data provided", "data": {}}


def test_duplicate_email_is_rejected(api, client):
    api.create_user("First", "a@x.com")
    r = client.post("/api/v1/users", json={"name": "Second", "email": "a@x.com"})
    assert r.status_code == 400
    assert r.json() == {"message": "User with this email already exists", "data": {}}

    count = client.get("/api/v1/users", params={"count": "true"}).json()["data"]
    assert count == 1


def test_create_with_pending_tasks_assigns_them(api):
    t1 = api.create_task(name="t1")
    t2 = api.create_task(name="t2")
    user = api.create_user("Bob", "bob@example.com", pendingTasks=[t1["_id"], t2["_id"], t1["_id"]])

    assert user["pendingTasks"] == [t1["_id"], t2["_id"]]
    for tid in (t1["_id"], t2["_id"]):
        task = api.task(tid)
        assert task["assignedUser"] == user["_id"]
        assert task["assignedUserName"] == "Bob"
    api.assert_consistent()


def test_create_with_completed_task_leaves_task_untouched(api):
    done = api.create_task(name="done", completed=True)
    user = api.create_user("Bob", "bob@example.com", pendingTasks=[done["_id"]])

    # The list is accepted as requested; the completed task is not retroactively assigned.
    assert user["pendingTasks"] == [done["_id"]]
    task = api.task(done["_id"])
    assert task["assignedUser"] == ""
    assert task["assignedUserName"] == "unassigned"


def test_create_with_unknown_task_ids_is_not_an_error(api):
    user = api.create_user("Bob", "bob@example.com", pendingTasks=["ghost"])
    assert user["pendingTasks"] == ["ghost"]


def test_update_adding_existing_id_keeps_one_copy(api, client):
    task = api.create_task()
    user = api.create_user(pendingTasks=[task["_id"]])

    r = _put_user(client, user, pendingTasks=[task["_id"], task["_id"]])
    assert r.status_code == 200
    assert r.json()["message"] == "User updated successfully"
    assert r.json()["data"]["pendingTasks"] == [task["_id"]]


def test_update_removing_task_unassigns_it(api, client):
    t1 = api.create_task(name="t1")
    t2 = api.create_task(name="t2")
    user = api.create_user(pendingTasks=[t1["_id"], t2["_id"]])

    r = _put_user(client, user, pendingTasks=[t2["_id"]])
    assert r.status_code == 200
    task = api.task(t1["_id"])
    assert task["assignedUser"] == ""
    assert task["assignedUserName"] == "unassigned"
    assert api.task(t2["_id"])["assignedUser"] == user["_id"]
    api.assert_consistent()


def test_update_taking_task_from_other_user_detaches_it(api, client):
    w = api.create_user("W", "w@example.com")
    v = api.create_user("V", "v@example.com")
    task = api.create_task(assignedUser=w["_id"], assignedUserName="W")

    r = _put_user(client, v, pendingTasks=[task["_id"]])
    assert r.status_code == 200
    assert api.task(task["_id"])["assignedUser"] == v["_id"]
    assert api.user(w["_id"])["pendingTasks"] == []
    assert api.user(v["_id"])["pendingTasks"] == [task["_id"]]
    api.assert_consistent()


def test_update_rename_refreshes_assigned_user_name(api, client):
    task = api.create_task()
    user = api.create_user("Old", "old@example.com", pendingTasks=[task["_id"]])

    r = _put_user(client, user, name="New")
    assert r.status_code == 200
    assert api.task(task["_id"])["assignedUserName"] == "New"


def test_update_email_collision(api, client):
    api.create_user("A", "a@example.com")
    b = api.create_user("B", "b@example.com")

    r = _put_user(client, b, email="a@example.com")
    assert r.status_code == 400
    assert r.json()["message"] == "User with this email already exists"
    assert api.user(b["_id"])["email"] == "b@example.com"

    # Keeping one's own email is fine
    r_ok = _put_user(client, b, name="B2")
    assert r_ok.status_code == 200
    assert r_ok.json()["data"]["name"] == "B2"


def test_update_without_pending_tasks_clears_list(api, client):
    task = api.create_task()
    user = api.create_user(pendingTasks=[task["_id"]])
    r = client.put(f"/api/v1/users/{user['_id']}", json={"name": user["name"], "email": user["email"]})
    assert r.status_code == 200
    assert r.json()["data"]["pendingTasks"] == []
    assert api.task(task["_id"])["assignedUser"] == ""


def test_update_unknown_user_is_404(client):
    r = client.put("/api/v1/users/missing", json={"name": "x", "email": "x@example.com"})
    assert r.status_code == 404
    assert r.json() == {"message": "User not found", "data": {}}


def test_delete_user_cascades(api, client):
    user = api.create_user()
    t1 = api.create_task(name="t1", assignedUser=user["_id"], assignedUserName="Alice")
    t2 = api.create_task(name="t2", assignedUser=user["_id"], assignedUserName="Alice")
    assert api.user(user["_id"])["pendingTasks"] == [t1["_id"], t2["_id"]]

    r = client.delete(f"/api/v1/users/{user['_id']}")
    assert r.status_code == 204
    assert client.get(f"/api/v1/users/{user['_id']}").status_code == 404
    for tid in (t1["_id"], t2["_id"]):
        task = api.task(tid)
        assert task["assignedUser"] == ""
        assert task["assignedUserName"] == "unassigned"


def test_delete_unknown_user_is_404(client):
    r = client.delete("/api/v1/users/missing")
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"

from datetime import date

from sqlalchemy import func, select

from storyforest.ages import calculate_age
from storyforest.tables import Book, LibraryBook, WishlistBook


def test_create_child_returns_stats(parent, add_child):
    child = add_child(parent, name="Hazel", birth_month=5, birth_year=2019)
    assert child["name"] == "Hazel"
    assert child["user_id"] == parent.user["id"]
    assert child["age"] == calculate_age(5, 2019)
    assert child["library_count"] == 0
    assert child["wishlist_count"] == 0


def test_create_child_validation(parent):
    bad_month = parent.post("/api/children", json={"name": "Theo", "birth_month": 13, "birth_year": 2020})
    assert bad_month.status_code == 400

    missing = parent.post("/api/children", json={"name": "Theo"})
    assert missing.status_code == 400

    blank = parent.post("/api/children", json={"name": "   ", "birth_month": 1, "birth_year": 2020})
    assert blank.status_code == 400


def test_create_child_rejects_future_birth(parent):
    resp = parent.post(
        "/api/children",
        json={"name": "Future", "birth_month": 1, "birth_year": date.today().year + 1},
    )
    assert resp.status_code == 400


def test_list_children_only_returns_own(parent, other_parent, add_child):
    add_child(parent, name="Hazel")
    add_child(parent, name="Theo", birth_month=11, birth_year=2021)
    add_child(other_parent, name="Milo")

    names = [c["name"] for c in parent.get("/api/children").json()]
    assert names == ["Hazel", "Theo"]
    assert [c["name"] for c in other_parent.get("/api/children").json()] == ["Milo"]


def test_get_child_visibility(parent, other_parent, add_child):
    child = add_child(other_parent, name="Milo")

    # bob is public
    assert parent.get(f"/api/children/{child['id']}").status_code == 200

    other_parent.patch("/api/user/privacy", json={"is_public": False})
    assert parent.get(f"/api/children/{child['id']}").status_code == 403
    # the owner still sees their own child
    assert other_parent.get(f"/api/children/{child['id']}").status_code == 200


def test_get_child_not_found_and_bad_id(parent):
    assert parent.get("/api/children/999").status_code == 404
    assert parent.get("/api/children/abc").status_code == 400


def test_delete_child_owner_only(parent, other_parent, add_child):
    child = add_child(parent)
    assert other_parent.delete(f"/api/children/{child['id']}").status_code == 403

    assert parent.delete(f"/api/children/{child['id']}").status_code == 200
    assert parent.get(f"/api/children/{child['id']}").status_code == 404


def test_delete_child_removes_library_and_wishlist(parent, add_child, db_session):
    child = add_child(parent)
    parent.post(f"/api/children/{child['id']}/library", json={"title": "A", "author": "X", "olid": "OL1W"})
    parent.post(f"/api/children/{child['id']}/wishlist", json={"title": "B", "author": "Y", "olid": "OL2W"})

    parent.delete(f"/api/children/{child['id']}")

    assert db_session.scalar(select(func.count()).select_from(LibraryBook)) == 0
    assert db_session.scalar(select(func.count()).select_from(WishlistBook)) == 0
    # book records are kept for other children
    assert db_session.scalar(select(func.count()).select_from(Book)) == 2

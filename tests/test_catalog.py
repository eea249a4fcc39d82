from bson import ObjectId

from tests.conftest import CHEF_EMAIL, USER_EMAIL, auth

MEAL = {
    "foodName": "Chicken Biryani",
    "chefName": "Rafi",
    "chefId": "chef-1234",
    "foodImage": "https://img.test/biryani.jpg",
    "price": 12.5,
    "ingredients": ["rice", "chicken", "saffron"],
    "estimatedDeliveryTime": "40 min",
    "deliveryArea": "Dhanmondi",
    "chefExperience": "5 years",
}


def create_meal(client, **overrides):
    resp = client.post("/meals", json={**MEAL, **overrides}, headers=auth("chef-token"))
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def test_meal_crud(client):
    meal_id = create_meal(client)

    meal = client.get(f"/meals/{meal_id}").json()
    assert meal["foodName"] == "Chicken Biryani"
    assert meal["userEmail"] == CHEF_EMAIL

    resp = client.patch(f"/meals/{meal_id}", json={"price": 14, "deliveryArea": "Gulshan"},
                        headers=auth("chef-token"))
    assert resp.status_code == 200
    meal = client.get(f"/meals/{meal_id}").json()
    assert meal["price"] == 14
    assert meal["deliveryArea"] == "Gulshan"
    assert meal["foodName"] == "Chicken Biryani"
    assert meal["updatedAt"] is not None

    assert client.delete(f"/meals/{meal_id}", headers=auth("chef-token")).status_code == 200
    assert client.get(f"/meals/{meal_id}").status_code == 404
    assert client.delete(f"/meals/{meal_id}", headers=auth("chef-token")).status_code == 404


def test_meal_update_needs_fields(client):
    meal_id = create_meal(client)
    resp = client.patch(f"/meals/{meal_id}", json={}, headers=auth("chef-token"))
    assert resp.status_code == 400


def test_meals_by_chef(client):
    create_meal(client)
    create_meal(client, userEmail="other@x.com", foodName="Kebab")
    meals = client.get(f"/meals/chef/{CHEF_EMAIL}").json()
    assert [m["foodName"] for m in meals] == ["Chicken Biryani"]
    assert len(client.get("/meals").json()) == 2


def test_daily_returns_six_newest(client):
    ids = [create_meal(client, foodName=f"Dish {i}") for i in range(8)]
    daily = client.get("/daily").json()
    assert [m["_id"] for m in daily] == list(reversed(ids))[:6]


def test_review_lifecycle(client):
    meal_id = create_meal(client)
    resp = client.post("/reviews", json={"foodId": meal_id, "mealName": "Chicken Biryani", "rating": 4,
                                         "comment": "Tasty", "reviewerName": "Ann"}, headers=auth())
    assert resp.status_code == 200
    review_id = resp.json()["id"]

    reviews = client.get(f"/reviews/meal/{meal_id}").json()
    assert reviews[0]["userEmail"] == USER_EMAIL
    assert reviews[0]["date"] is not None

    resp = client.patch(f"/reviews/{review_id}", json={"rating": 5, "comment": "Even better"}, headers=auth())
    assert resp.status_code == 200
    mine = client.get(f"/reviews/user/{USER_EMAIL}", headers=auth()).json()
    assert (mine[0]["rating"], mine[0]["comment"]) == (5, "Even better")

    assert client.delete(f"/reviews/{review_id}", headers=auth()).status_code == 200
    assert client.get(f"/reviews/meal/{meal_id}").json() == []


def test_review_rating_bounds(client):
    resp = client.post("/reviews", json={"foodId": str(ObjectId()), "rating": 6}, headers=auth())
    assert resp.status_code == 422


def test_favorite_twice_conflicts(client):
    first = client.post("/favorites", json={"mealId": "M1", "mealName": "Pho"}, headers=auth())
    second = client.post("/favorites", json={"mealId": "M1", "mealName": "Pho"}, headers=auth())

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["message"] == "Meal is already in favorites"


def test_favorite_owner_is_the_caller(client, db):
    resp = client.post("/favorites", json={"mealId": "M1", "userEmail": "someone@else.com"}, headers=auth())
    favorite = db.favorites.find_one({"_id": ObjectId(resp.json()["id"])})
    assert favorite["userEmail"] == USER_EMAIL
    assert favorite["addedTime"] is not None

    # the same meal for another user is fine
    assert client.post("/favorites", json={"mealId": "M1"}, headers=auth("chef-token")).status_code == 200


def test_favorites_list_and_remove(client):
    favorite_id = client.post("/favorites", json={"mealId": "M1"}, headers=auth()).json()["id"]
    assert len(client.get(f"/favorites/user/{USER_EMAIL}", headers=auth()).json()) == 1

    assert client.delete(f"/favorites/{favorite_id}", headers=auth()).status_code == 200
    assert client.get(f"/favorites/user/{USER_EMAIL}", headers=auth()).json() == []
    assert client.delete(f"/favorites/{favorite_id}", headers=auth()).status_code == 404


def test_ingredients_as_text(client):
    meal_id = create_meal(client, ingredients="rice, chicken, saffron")
    assert client.get(f"/meals/{meal_id}").json()["ingredients"] == "rice, chicken, saffron"

    client.patch(f"/meals/{meal_id}", json={"ingredients": ["rice"]}, headers=auth("chef-token"))
    assert client.get(f"/meals/{meal_id}").json()["ingredients"] == ["rice"]

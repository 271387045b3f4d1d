"""Dev-only endpoints for seeding.

Endpoints:
- POST /api/v1/dev/seed - Create test users (one per role plus a locked one) and sample recipes

Not mounted when `settings.is_production`.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..core.responses import ok
from ..db import get_db
from ..models import Recipe, RecipeStatus, Role, User
from ..security import hash_password

router = APIRouter()

SEED_USERS = [
    {"email": "user@recipehub.dev", "password": "User123!", "first_name": "John", "last_name": "Doe", "role": Role.USER},
    {"email": "chef@recipehub.dev", "password": "Chef123!", "first_name": "Chef", "last_name": "Gordon", "role": Role.CHEF},
    {"email": "admin@recipehub.dev", "password": "Admin123!", "first_name": "Admin", "last_name": "Administrator", "role": Role.ADMIN},
    {"email": "test@example.com", "password": "Test123!", "first_name": "Test", "last_name": "User", "role": Role.USER},
    {"email": "blocked@example.com", "password": "Blocked123!", "first_name": "Blocked", "last_name": "User", "role": Role.USER, "locked": True},
]

SEED_RECIPES = [
    {
        "title": "Classic Margherita Pizza",
        "description": "A simple homemade pizza with fresh mozzarella, tomatoes and basil.",
        "main_ingredient": "Pizza Dough",
        "ingredients": [
            {"name": "Pizza dough", "amount": "1", "unit": "ball"},
            {"name": "Tomato sauce", "amount": "1/2", "unit": "cup"},
            {"name": "Fresh mozzarella", "amount": "8", "unit": "oz"},
            {"name": "Fresh basil leaves", "amount": "10", "unit": "leaves"},
        ],
        "instructions": [
            "Preheat oven to 245C with a pizza stone inside",
            "Roll out the dough to a 30cm circle",
            "Spread sauce, add torn mozzarella",
            "Bake 12-15 minutes, top with basil",
        ],
        "prep_time": 20,
        "cooking_time": 15,
        "servings": 4,
        "difficulty": "EASY",
        "meal_type": ["LUNCH", "DINNER"],
        "diet_type": ["VEGETARIAN"],
        "cuisine_type": "ITALIAN",
        "allergies": ["GLUTEN", "DAIRY"],
        "calories": 285,
        "protein": 12,
        "carbs": 36,
        "fat": 10,
        "status": RecipeStatus.APPROVED,
    },
    {
        "title": "Chicken Stir Fry",
        "description": "Quick weeknight stir fry with crisp vegetables.",
        "main_ingredient": "Chicken",
        "ingredients": [
            {"name": "Chicken breast", "amount": "2", "unit": "pieces"},
            {"name": "Bell pepper", "amount": "1", "unit": None},
            {"name": "Soy sauce", "amount": "3", "unit": "tbsp"},
        ],
        "instructions": [
            "Slice chicken and vegetables",
            "Stir fry chicken until golden",
            "Add vegetables and sauce, cook 3 minutes",
        ],
        "prep_time": 15,
        "cooking_time": 10,
        "servings": 2,
        "difficulty": "MEDIUM",
        "meal_type": ["DINNER"],
        "diet_type": ["HIGH_PROTEIN"],
        "cuisine_type": "ASIAN",
        "allergies": ["SOY"],
        "status": RecipeStatus.PENDING,
    },
]


@router.post("/dev/seed")
def seed_dev_data(db: Session = Depends(get_db)):
    """Idempotent: existing users and recipes (matched by email / title) are left alone."""
    users = {}
    created_users = 0
    for entry in SEED_USERS:
        user = db.query(User).filter(User.email == entry["email"]).first()
        if not user:
            user = User(
                email=entry["email"],
                password_hash=hash_password(entry["password"]),
                first_name=entry["first_name"],
                last_name=entry["last_name"],
                role=entry["role"],
                terms_accepted=True,
                is_email_verified=True,
            )
            db.add(user)
            created_users += 1
        if entry.get("locked"):
            user.failed_login_attempts = 5
            user.blocked_until = utcnow() + timedelta(minutes=15)
        users[entry["role"]] = users.get(entry["role"]) or user
    db.commit()

    chef, admin = users[Role.CHEF], users[Role.ADMIN]
    created_recipes = 0
    for data in SEED_RECIPES:
        if db.query(Recipe).filter(Recipe.title == data["title"]).first():
            continue
        recipe = Recipe(author_id=chef.id, **data)
        if recipe.status == RecipeStatus.APPROVED:
            recipe.approved_at = utcnow()
            recipe.approved_by_id = admin.id
        db.add(recipe)
        created_recipes += 1
    db.commit()

    return ok(
        {
            "users_created": created_users,
            "recipes_created": created_recipes,
            "accounts": [{"email": u["email"], "password": u["password"], "role": u["role"]} for u in SEED_USERS],
        },
        "Seed complete",
    )

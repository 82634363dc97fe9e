"""Database seeder: default roles, one account per role and two sample posts."""
import argparse
import asyncio
import time
from datetime import datetime, timezone

from blog_panel.database import Base, async_session, engine
from blog_panel.models import Category, Permission, Post, Role, Tag, User
from blog_panel.security import hash_password
from blog_panel.utils import slugify

ALL_PERMISSIONS = [p.value for p in Permission]

ROLES = {
    "OWNER": ALL_PERMISSIONS,
    "ADMIN": ALL_PERMISSIONS,
    "PUBLIC": [Permission.READ.value],
}

USERS = [
    ("owner@example.com", "Owner", "OWNER"),
    ("admin@example.com", "Admin", "ADMIN"),
    ("reader@example.com", "Reader", "PUBLIC"),
]

POSTS = [
    {
        "title": "Rotating refresh tokens without a session store",
        "category": "backend",
        "tags": ["fastapi", "security"],
    },
    {
        "title": "Sweeping a Redis cache after every write request",
        "category": "backend",
        "tags": ["redis", "performance"],
    },
]


async def seed(password: str, reset: bool = False):
    print(f"Seeding: {len(ROLES)} roles, {len(USERS)} users, {len(POSTS)} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        roles = {}
        for name, permissions in ROLES.items():
            role = Role(name=name, permissions=permissions)
            session.add(role)
            roles[name] = role
        await session.flush()
        print(f"  Created {len(roles)} roles")

        users = []
        for email, name, role_name in USERS:
            user = User(
                email=email,
                name=name,
                password=hash_password(password),
                role_id=roles[role_name].id,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        categories: dict[str, Category] = {}
        tags: dict[str, Tag] = {}
        for spec in POSTS:
            category = categories.get(spec["category"])
            if category is None:
                category = Category(name=spec["category"], slug=slugify(spec["category"]))
                session.add(category)
                categories[spec["category"]] = category
            post_tags = []
            for tag_name in spec["tags"]:
                if tag_name not in tags:
                    tags[tag_name] = Tag(name=tag_name)
                    session.add(tags[tag_name])
                post_tags.append(tags[tag_name])
            await session.flush()

            post = Post(
                title=spec["title"],
                slug=slugify(spec["title"]),
                description=f"{spec['title']}. " * 4,
                content=f"This is the full content of '{spec['title']}'. " * 10,
                published=True,
                published_at=datetime.now(timezone.utc),
                user_id=users[0].id,
                category_id=category.id,
            )
            post.tags = post_tags
            session.add(post)
        await session.flush()

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    for email, _, role_name in USERS:
        print(f"  {role_name:<7} {email}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog panel database")
    parser.add_argument("--password", default="password123", help="Password for every seeded account")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()
    asyncio.run(seed(args.password, reset=args.reset))


if __name__ == "__main__":
    main()

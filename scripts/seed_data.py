#!/usr/bin/env python3
"""
Seed script: creates a realistic dataset for trying out the blog API.

Creates:
  • 8 authors (each signed in with their own session cookie)
  • A handful of categories and tags
  • 3 posts per author, most published, one draft, a few featured
  • A follow graph (each author follows 2-4 others)
  • Comments and claps across the published posts

Run against a running API:
  python scripts/seed_data.py --api-url http://localhost:8000

All IDs are printed so you can use them in curl commands.
"""
import argparse
import http.cookiejar
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Optional

PASSWORD = "inkwell-demo-pass"

AUTHORS = [
    ("alice_writes", "Alice Chen"),
    ("bob_builds", "Bob Martinez"),
    ("carol_codes", "Carol Singh"),
    ("dave_designs", "Dave Kim"),
    ("eve_explains", "Eve Johnson"),
    ("frank_ferments", "Frank Williams"),
    ("grace_graphs", "Grace Li"),
    ("henry_hikes", "Henry Brown"),
]

CATEGORIES = [
    ("Engineering", "How software gets built"),
    ("Design", "Interfaces, type and colour"),
    ("Food", "Cooking and fermentation"),
    ("Outdoors", "Trails, maps and weather"),
]

TAGS = ["python", "databases", "async", "typography", "sourdough", "hiking", "career", "testing"]

TITLES = [
    "What I learned shipping a search box",
    "Indexes are a promise about the future",
    "A gentle introduction to event loops",
    "Choosing a typeface for long-form reading",
    "Seven days of sourdough starter",
    "Mapping a ridge walk with public data",
    "Writing tests you will still trust next year",
    "The quiet value of boring technology",
    "Colour contrast for people, not checklists",
    "Notes from a week without meetings",
]

PARAGRAPH = (
    "This started as a weekend experiment and turned into something I use every day. "
    "The first version was clumsy, but each small change taught me something about the problem. "
)

COMMENTS = [
    "Great read, thanks for writing this up.",
    "I tried this last week and hit the same wall.",
    "Bookmarking this for the team.",
    "Would love a follow-up on the trade-offs.",
    "Clear and practical. More like this please!",
]


@dataclass
class ApiClient:
    """JSON-over-HTTP client holding one user's session cookie."""

    base_url: str
    cookies: http.cookiejar.CookieJar = field(default_factory=http.cookiejar.CookieJar)

    def __post_init__(self) -> None:
        self._opener = urllib.request.build_opener(urllib.request.HTTPCookieProcessor(self.cookies))

    def _send(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method=method
        )
        try:
            with self._opener.open(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None) -> dict:
        return self._send("POST", path, data)

    def get(self, path: str) -> dict:
        return self._send("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def sign_in(api_url: str, username: str, display_name: str) -> tuple[ApiClient, Optional[int]]:
    """Register the author, or log in if the account already exists."""
    client = ApiClient(api_url)
    email = f"{username}@inkwell.dev"
    user = client.post(
        "/auth/register",
        {"email": email, "password": PASSWORD, "username": username, "name": display_name},
    )
    if not user:
        user = client.post("/auth/login", {"email": email, "password": PASSWORD})
    return client, user.get("id")


def main(api_url: str) -> None:
    wait_for_api(ApiClient(api_url))

    # ── Authors ─────────────────────────────────────────────────────────
    print("Signing in authors...")
    authors: dict[int, ApiClient] = {}
    for username, display_name in AUTHORS:
        client, uid = sign_in(api_url, username, display_name)
        if uid:
            authors[uid] = client
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to sign in {username}")

    if not authors:
        print("No authors available, aborting")
        return
    user_ids = list(authors)
    admin = authors[user_ids[0]]

    # ── Categories & tags ───────────────────────────────────────────────
    print("\nCreating categories and tags...")
    for name, description in CATEGORIES:
        admin.post("/categories", {"name": name, "description": description})
    for name in TAGS:
        admin.post("/tags", {"name": name})
    category_ids = [c["id"] for c in admin.get("/categories")]
    tag_ids = [t["id"] for t in admin.get("/tags")]
    print(f"  ✓ {len(category_ids)} categories, {len(tag_ids)} tags")

    # ── Posts ───────────────────────────────────────────────────────────
    print("\nCreating posts...")
    published: list[int] = []
    for uid, client in authors.items():
        for n in range(3):
            result = client.post(
                "/posts",
                {
                    "title": random.choice(TITLES),
                    "subtitle": "Notes from the workshop",
                    "content": PARAGRAPH * random.randint(3, 40),
                    "published": n < 2,
                    "featured": n == 0 and random.random() < 0.5,
                    "category_id": random.choice(category_ids) if category_ids else None,
                    "tag_ids": random.sample(tag_ids, k=min(2, len(tag_ids))),
                },
            )
            if result.get("id") and result.get("published"):
                published.append(result["id"])
    print(f"  ✓ {len(published)} published posts (plus one draft per author)")

    # ── Follow graph ────────────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower_id, client in authors.items():
        others = [u for u in user_ids if u != follower_id]
        for followee_id in random.sample(others, k=min(random.randint(2, 4), len(others))):
            client.post(f"/users/{followee_id}/follow")
    print("  ✓ Follow graph created")

    # ── Comments & claps ────────────────────────────────────────────────
    print("\nAdding comments and claps...")
    comments = claps = 0
    for post_id in published:
        for uid in random.sample(user_ids, k=random.randint(0, min(4, len(user_ids)))):
            client = authors[uid]
            if random.random() < 0.5:
                client.post(f"/posts/{post_id}/comments", {"content": random.choice(COMMENTS)})
                comments += 1
            count = random.randint(1, 50)
            client.post(f"/posts/{post_id}/clap", {"count": count})
            claps += count
    print(f"  ✓ {comments} comments, {claps} claps")

    # ── Summary ─────────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print("# Latest published posts:")
    print(f"  curl -s '{api_url}/posts' | python3 -m json.tool\n")
    print("# Search:")
    print(f"  curl -s '{api_url}/posts/search?q=sourdough' | python3 -m json.tool\n")
    print("# Featured:")
    print(f"  curl -s '{api_url}/posts/featured' | python3 -m json.tool\n")
    print(f"# Sign in as '{AUTHORS[0][0]}':")
    print(f"  curl -s -c cookies.txt -X POST '{api_url}/auth/login' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{AUTHORS[0][0]}@inkwell.dev\", \"password\": \"{PASSWORD}\"}}'\n")
    print("# Check Prometheus metrics: " + f"{api_url}/metrics")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Inkwell blog API with demo data")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)

"""
playinmo.database.seed — Default Settings & Demo Data
======================================================

Two seeders:

* :func:`seed_default_settings` runs on every startup and inserts the
  economy / display knobs that are missing.  Admin edits are never
  overwritten.
* :func:`seed_demo_data` fills an **empty** database with a small demo
  catalog (categories, games, players, scores, chat, achievements and
  shop rewards) so a fresh install has something to show.  It is a no-op
  once any user exists.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from passlib.hash import pbkdf2_sha256
from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from playinmo.database.models import (
    Achievement,
    ChatMessage,
    Game,
    GameCategory,
    GameScore,
    Reward,
    Setting,
    TriggerType,
    User,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "points.per_score": (5, "economy", "Points awarded for each submitted score"),
    "points.per_review": (10, "economy", "Points awarded for a user's first review of a game"),
    "points.per_chat_message": (0, "economy", "Points awarded per chat message"),
    "chat.max_message_length": (500, "chat", "Maximum characters per chat message"),
    "chat.default_limit": (20, "chat", "Messages returned by the chat feed"),
    "leaderboard.default_limit": (10, "display", "Rows shown on leaderboards"),
    "reviews.recent_limit": (10, "display", "Reviews shown in the recent-reviews feed"),
    "display.site_title": ("PlayinMO", "display", "Site title shown in the header"),
    "display.primary_color": ("", "display", "Primary brand color hex code (e.g. #7c3aed)"),
    "ads.enabled": (True, "ads", "Serve advertisements to visitors"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)


# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------
_DEMO_USERS = ("GamerX", "ProPlayer", "GameMaster", "CasualGamer", "PixelPrincess")

_DEMO_CATEGORIES = [
    ("Action", "Fast-paced games with emphasis on challenging gameplay"),
    ("Strategy", "Games that require careful planning and tactical thinking"),
    ("Puzzle", "Brain teasers and logic challenges"),
    ("Adventure", "Story-driven exploration games"),
    ("Sports", "Games based on real-world sports and competitions"),
    ("Racing", "Speed and driving games"),
]

# (title, category, featured, plays, rating×10, released, developer, instructions)
_DEMO_GAMES = [
    ("Speed Racer X", "racing", True, 12584, 45, "2024-02-15", "SpeedTech Studios",
     "Use arrow keys to steer, Space to boost, Shift for drift."),
    ("Castle Puzzle Master", "puzzle", True, 8741, 46, "2024-01-10", "Brain Games Inc",
     "Click and drag objects to solve puzzles. Press H for hints."),
    ("Epic Battle Arena", "action", True, 18962, 48, "2023-11-22", "Epic Games Studio",
     "WASD to move, left-click to attack, right-click for special ability."),
    ("Tactical Commander", "strategy", True, 6327, 47, "2023-12-05", "Strategic Minds",
     "Use mouse to select units and issue commands. Press Tab for resources view."),
    ("Lost Explorer", "adventure", False, 9574, 44, "2024-03-01", "Adventure Quest Games",
     "WASD to move, E to interact with objects, I for inventory."),
    ("Basketball Pro", "sports", False, 11238, 43, "2023-10-15", "Sports Simulation",
     "Use arrow keys to move, Space to shoot, B to pass the ball."),
    ("Stealth Operative", "action", False, 7865, 45, "2023-11-05", "Shadow Games",
     "Use WASD to move, C to crouch, E to interact, Q for special equipment."),
    ("Sudoku Master", "puzzle", False, 14752, 42, "2023-09-20", "Puzzle Logic",
     "Click on a cell and use number keys to fill in values. Press H for hints."),
]

# (user index, game index, score, won)
_DEMO_SCORES = [
    (0, 0, 9875, True), (1, 0, 11250, True), (2, 0, 8750, False),
    (3, 0, 7500, False), (4, 0, 10500, True),
    (0, 1, 6250, True), (1, 1, 5800, False), (2, 1, 7100, True),
    (0, 2, 12400, True), (1, 2, 13700, True), (2, 2, 11900, True),
]

_DEMO_CHAT = [
    (0, "Anyone up for a Speed Racer X rematch?"),
    (1, "Just beat my high score in Epic Battle Arena!"),
    (4, "Castle Puzzle Master level 12 is brutal"),
]

_DEMO_ACHIEVEMENTS = [
    ("First Steps", "Submit your first score", TriggerType.FIRST_EVENT,
     {"event": "score_submitted"}, 10, "common"),
    ("Regular", "Submit 25 scores", TriggerType.STAT_THRESHOLD,
     {"field": "scores_submitted", "value": 25}, 50, "rare"),
    ("Champion", "Win 10 games", TriggerType.STAT_THRESHOLD,
     {"field": "wins", "value": 10}, 100, "epic"),
    ("Critic", "Write 5 reviews", TriggerType.STAT_THRESHOLD,
     {"field": "reviews_written", "value": 5}, 25, "common"),
    ("High Roller", "Score 10,000 points in a single game", TriggerType.SCORE_THRESHOLD,
     {"value": 10000}, 75, "rare"),
    ("Hoarder", "Earn 1,000 lifetime points", TriggerType.POINTS_MILESTONE,
     {"value": 1000}, 150, "legendary"),
]

# (name, description, type, value, cost, rarity)
_DEMO_REWARDS = [
    ("Bronze Frame", "A simple bronze avatar frame", "avatar_frame",
     {"color": "#cd7f32"}, 50, "common"),
    ("Gold Frame", "A shiny gold avatar frame", "avatar_frame",
     {"color": "#ffd700"}, 250, "epic"),
    ("Veteran Badge", "Show off your dedication", "badge",
     {"icon": "medal"}, 100, "rare"),
    ("Night Theme", "Dark profile theme", "theme",
     {"background": "#0f172a"}, 150, "rare"),
]


def seed_demo_data(engine: Engine) -> bool:
    """Populate an empty database with demo content.

    Returns ``True`` when data was inserted, ``False`` when users already
    existed and nothing was touched.
    """
    with Session(engine) as session:
        if session.scalar(select(func.count()).select_from(User)):
            logger.info("Users already present; skipping demo seed.")
            return False

        password_hash = pbkdf2_sha256.hash("password")
        users = [
            User(
                username=name,
                email=f"{name.lower()}@example.com",
                password_hash=password_hash,
                avatar_url=f"https://i.pravatar.cc/150?u={name.lower()}",
            )
            for name in _DEMO_USERS
        ]
        session.add_all(users)

        categories = {
            name.lower(): GameCategory(name=name, slug=name.lower(), description=desc)
            for name, desc in _DEMO_CATEGORIES
        }
        session.add_all(categories.values())
        session.flush()

        games = []
        for title, cat, featured, plays, rating, released, dev, how in _DEMO_GAMES:
            games.append(Game(
                title=title,
                description=f"{title} by {dev}.",
                image_url="",
                category_id=categories[cat].id,
                is_featured=featured,
                plays=plays,
                rating=rating,
                release_date=datetime.fromisoformat(released).replace(tzinfo=UTC),
                developer=dev,
                instructions=how,
            ))
        session.add_all(games)
        session.flush()

        session.add_all(
            GameScore(user_id=users[u].id, game_id=games[g].id, score=s, won=w)
            for u, g, s, w in _DEMO_SCORES
        )
        session.add_all(
            ChatMessage(user_id=users[u].id, message=msg) for u, msg in _DEMO_CHAT
        )
        session.add_all(
            Achievement(
                name=name, description=desc, trigger_type=trig.value,
                condition=cond, points=pts, rarity=rarity,
            )
            for name, desc, trig, cond, pts, rarity in _DEMO_ACHIEVEMENTS
        )
        session.add_all(
            Reward(name=name, description=desc, type=rtype, value=value,
                   cost=cost, rarity=rarity)
            for name, desc, rtype, value, cost, rarity in _DEMO_REWARDS
        )
        session.commit()

    logger.info(
        "Seeded demo data: %d users, %d categories, %d games.",
        len(_DEMO_USERS), len(_DEMO_CATEGORIES), len(_DEMO_GAMES),
    )
    return True

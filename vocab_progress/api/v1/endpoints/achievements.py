"""Achievement and gamification endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from vocab_progress.api import deps
from vocab_progress.core.gamification import ACHIEVEMENT_DEFINITIONS
from vocab_progress.schemas import AchievementRead, GamificationStateRead, UserAchievementRead
from vocab_progress.services.facade import ProgressFacade

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("", response_model=list[AchievementRead])
def list_achievements() -> list[AchievementRead]:
    """Return all available achievement definitions."""

    return [
        AchievementRead.from_definition(definition)
        for definition in ACHIEVEMENT_DEFINITIONS.values()
    ]


@router.get("/my", response_model=list[UserAchievementRead])
def get_my_achievements(
    *,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> list[UserAchievementRead]:
    """Return the learner's unlocked achievements, oldest first."""

    unlocked = facade.unlocked_achievements()
    response: list[UserAchievementRead] = []
    for achievement_type, unlocked_at in unlocked.items():
        definition = ACHIEVEMENT_DEFINITIONS.get(achievement_type)
        if definition is None:
            continue
        response.append(
            UserAchievementRead(
                achievement_type=achievement_type,
                name=definition.name,
                unlocked_at=unlocked_at,
                xp_reward=definition.xp_reward,
            )
        )
    response.sort(key=lambda item: (item.unlocked_at is None, item.unlocked_at, item.achievement_type))
    return response


@router.get("/state", response_model=GamificationStateRead)
def get_gamification_state(
    *,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> GamificationStateRead:
    """Return XP, level and streak of the learner."""

    return GamificationStateRead.from_state(facade.gamification_state())

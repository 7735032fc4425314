# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by resource:
# - health.py: Health check endpoints (public)
# - auth.py: Join-code signup and login (public)
# - org.py: Organization signup (public)
# - users.py: Org user directory
# - teams.py: Teams and team rosters
# - athletes.py / coaches.py: Member management
# - skills.py: Skill catalogue and skill media
# - drills.py: Drill library and drill media
# - scorecard.py: Scorecard templates
# - evaluations.py: Evaluations, matrix edits and workout progress
# - plans.py: Practice plans and invitations
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import auth
from . import org
from . import users
from . import teams
from . import athletes
from . import coaches
from . import skills
from . import drills
from . import scorecard
from . import evaluations
from . import plans

__all__ = [
    "health",
    "auth",
    "org",
    "users",
    "teams",
    "athletes",
    "coaches",
    "skills",
    "drills",
    "scorecard",
    "evaluations",
    "plans",
]

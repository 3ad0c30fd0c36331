"""
pointbot — Community Points & Weekly Lotto Bot for Discord
===========================================================
Rewards members with points for attendance, reactions and poll
participation, lets them redeem points for tournament tickets, and runs a
weekly 4-digit lotto.  Calendar-driven jobs advance exchange requests,
settle the lotto and prune old activity.

Package layout::

    pointbot/
    ├── config.py          # YAML profiles → immutable BotConfig
    ├── constants.py       # Rewards, limits, emoji lists
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # Users, activities, exchanges, lotto tables
    ├── engine/
    │   ├── calendar.py    # UTC day / ISO week helpers
    │   ├── events.py      # PlainMessage / ReactionAdded variants
    │   ├── lotto.py       # Draw generation + guess scoring
    │   └── quota.py       # Per-activity rate-limit policy table
    ├── services/
    │   ├── ledger_service.py    # Point balances
    │   ├── activity_service.py  # Rate-limited activity rewards
    │   ├── exchange_service.py  # Ticket redemption workflow
    │   ├── lotto_service.py     # Draws, guesses, settlement
    │   ├── scheduler.py         # Cron jobs with retry-until-success
    │   ├── embeds.py            # Discord embed builders
    │   └── notify.py            # Channel posts + DMs
    └── bot/
        ├── core.py        # Bot subclass, cog loader, guild filter
        └── cogs/
            ├── points.py    # !attend, !cp, !cr, !rank, !myrank
            ├── reactions.py # Poll + reaction rewards
            ├── exchange.py  # /exchange
            ├── lotto.py     # /lotto, /checklotto, /lotto-guideline
            └── tasks.py     # Scheduled jobs
"""

__version__ = "0.1.0"

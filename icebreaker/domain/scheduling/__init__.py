"""
Scheduling Domain

Availability, mutual-slot computation, AI-ranked meeting suggestions and
the meeting lifecycle.

Structure:
```
domain/scheduling/
├── errors.py           # Domain errors with HTTP status + machine code
├── availability.py     # Weekly template, date overrides, blocked dates
├── text_parser.py      # Free text → availability (local, best effort)
├── calendar_import.py  # Busy intervals → availability
├── intersection.py     # Two availabilities → candidate slots
├── ranker.py           # AI ranking of candidates with chronological fallback
├── lifecycle.py        # Meeting state machine and derived views
├── schemas.py          # Request/response models
├── repository.py       # Profile and meeting queries
├── service.py          # Orchestration, notifications, calendar sync
└── router.py           # /scheduling endpoints
```

Endpoints:
- GET/PUT /scheduling/availability/me
- PUT /scheduling/availability/me/days/{day}
- POST /scheduling/availability/me/overrides
- POST /scheduling/availability/me/blocked-dates
- POST /scheduling/availability/me/parse
- POST /scheduling/availability/me/import-calendar
- GET /scheduling/availability/{user_id}
- POST /scheduling/suggestions
- POST /scheduling/meetings, GET /scheduling/meetings, GET /scheduling/meetings/{id}
- POST /scheduling/meetings/{id}/confirm|decline|cancel|reschedule|complete
"""

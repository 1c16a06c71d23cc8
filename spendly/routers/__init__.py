"""HTTP routers.

- assistant: POST /assistant, POST /assistant/parse
- recurring_rules: /recurring-rules CRUD
- insights: GET /insights
- llm_health: GET /llm/health
- metrics: GET /metrics (prometheus exposition)
"""

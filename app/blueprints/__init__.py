"""
Startup Task Engine
Blueprint registry.

    task_bp        /api/v1/tasks         — task CRUD, status, freelance marketplace
    task_timer_bp  /api/v1/tasks/<id>    — work timer + time logs
    health_bp      /api/v1/health        — probes
"""

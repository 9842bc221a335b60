from app.routers import attendance, attention, auth, daily_log, dashboard, destinations, fee, fees_gate, students, sync, vehicles

__all__ = [
    'attendance',
    'attention',
    'auth',
    'daily_log',
    'dashboard',
    'destinations',
    'fee',
    'fees_gate',
    'students',
    'sync',
    'vehicles',
]

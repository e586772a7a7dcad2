"""Run one alert cycle against the configured database and print the result."""
import json
import sys

from wardwatch.core.database import SessionLocal
from wardwatch.services.alert_engine import AlertEngine
from wardwatch.services.notification_service import build_notifier

engine = AlertEngine(SessionLocal, notifier=build_notifier())
result = engine.run_cycle()

print(f"Alert cycle started at {engine.last_run_at.isoformat()}")
print(json.dumps(result.as_dict(), indent=2))
sys.exit(1 if result.errors else 0)

import os

# Settings are read at import time, so they are fixed before any app module loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["RESEND_API_KEY"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = ""
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SLOT_CAPACITY_POLICY"] = "decrement"

import os
from dotenv import load_dotenv
load_dotenv()

class Settings:
    APP_NAME = os.getenv("APP_NAME", "Dorminder Billing Console")
    APP_ENV = os.getenv("APP_ENV", "development").lower()
    MONGO_URL = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DATABASE = os.getenv("MONGO_DATABASE", "dorminder")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"

    BILLS_COLLECTION = os.getenv("BILLS_COLLECTION", "bills")
    PAYMENTS_COLLECTION = os.getenv("PAYMENTS_COLLECTION", "bill_payments")
    TENANTS_COLLECTION = os.getenv("TENANTS_COLLECTION", "tenants")

    # optimistic-concurrency attempts per bill mutation
    PAYMENT_MAX_RETRIES = int(os.getenv("PAYMENT_MAX_RETRIES", "3"))

settings = Settings()

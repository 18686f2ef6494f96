import gspread
from google.oauth2.service_account import Credentials
from dotenv import load_dotenv
import os
import json

load_dotenv()

JSON_KEYS = ("shipping_rates", "shipping_methods", "rules")
LIST_KEYS = ("holidays", "weekly_holidays")
TEXT_KEYS = ("store_name", "timezone", "delivery_source", "delivery_key", "delivery_format", "default_lead_days")


def get_sheet_data():
    """Fetch shop configuration rows from Google Sheet (header row skipped)"""
    creds_dict = json.loads(os.getenv('GOOGLE_CREDENTIALS_JSON'))
    scopes = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
    creds = Credentials.from_service_account_info(creds_dict, scopes=scopes)

    client = gspread.authorize(creds)
    sheet = client.open_by_key(os.getenv('SHEET_ID'))
    return sheet.sheet1.get_all_values()[1:]


def parse_to_config(values_list):
    """Parse key/value sheet rows to a raw config dictionary"""
    config = {
        "store_name": "",
        "timezone": "UTC",
        "delivery_source": "",
        "delivery_key": "",
        "delivery_format": "",
        "default_lead_days": "",
        "shipping_rates": [],
        "shipping_methods": {},
        "rules": [],
        "holidays": [],
        "weekly_holidays": [],
    }

    for row in values_list:
        if len(row) < 2:
            continue

        key, value = row[0].strip(), row[1].strip()

        if key in TEXT_KEYS:
            config[key] = value
        elif key in LIST_KEYS:
            config[key] = [item.strip() for item in value.split(',') if item.strip()]
        elif key in JSON_KEYS and value:
            config[key] = json.loads(value)

    return config

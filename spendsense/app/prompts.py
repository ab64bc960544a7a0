"""Prompt templates for transaction categorization and financial chat."""
import json
from datetime import datetime, timezone
from typing import Any, List, Optional

DEFAULT_RECEIPT_PROMPT = (
    "Please analyze this receipt and extract individual line items. "
    "Do not include totals, tax, or service charges as separate items."
)

EXAMPLE_ID = "b9a23f22-efe2-44f2-8ae1-f929e1d8bb05"
EXAMPLE_QUERY_ID = "123e4567-e89b-12d3-a456-426614174000"


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. ``2024-03-16T17:48:42.549Z``."""
    moment = moment.astimezone(timezone.utc) if moment.tzinfo else moment
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def categorize_system_prompt(categories: Any) -> str:
    return f"""You are a JSON-only financial transaction categorizer. Your task is to analyze transactions and output ONLY valid JSON.

Rules:
1. Output must be a valid JSON array of transactions
2. DO NOT include any explanatory text
3. DO NOT include markdown formatting
4. Each transaction must have exactly these fields:
   - amount (number, no currency symbols)
   - type (either "income" or "expense")
   - description (string)
   - categoryId (string matching available categories)
   - date (ISO string)
   - id (UUID string)

Available categories:
{_dump(categories)}

Example valid output format:
[{{
  "amount": 20,
  "type": "expense",
  "description": "Coffee",
  "categoryId": "1",
  "date": "2024-03-16T17:48:42.549Z",
  "id": "{EXAMPLE_ID}"
}}]"""


def build_categorize_messages(text: str, categories: Any) -> List[dict]:
    return [
        {"role": "system", "content": categorize_system_prompt(categories)},
        {
            "role": "user",
            "content": (
                f"Convert this to JSON transactions array: {text}. "
                "Remember to output ONLY the JSON array, no other text."
            ),
        },
    ]


def chat_system_prompt(categories: Any, entries: Any, currency: Any, now: datetime) -> str:
    """System prompt for the chat endpoint.

    The current date and year are embedded so relative expressions such as
    "yesterday" or "last month" resolve against the wall clock instead of the
    model's training cutoff.
    """
    current_date = iso_timestamp(now)
    year = now.year
    return f"""You are a financial AI assistant that can help with both categorizing transactions and answering financial queries.
Your responses must be in valid JSON format.

Rules:
1. Output must be a valid JSON object with these fields:
   - type: either "categorization" or "query_response"
   - message: string (AI's response message)
   - data: object or array (depending on type)
   - timestamp: ISO string

2. For categorization (type: "categorization"):
   - data should be an array of transactions
   - Each transaction must have:
     * amount (number, no currency symbols)
     * type (either "income" or "expense")
     * description (string)
     * categoryId (string matching available categories)
     * date (ISO string)
     * id (UUID string)
   - Date handling rules:
     * Today is {current_date} and the current year is {year}
     * If a date is mentioned in the text (e.g., "yesterday", "last week", specific date), use that date with the current year {year}
     * For relative dates:
       - "yesterday" = previous day in {year}
       - "last week" = 7 days ago in {year}
       - "last month" = previous month in {year}
       - "today" = current date
     * If no date is mentioned, use the current date
     * Convert all dates to ISO string format
     * NEVER use dates from previous years unless explicitly specified

3. For queries (type: "query_response"):
   - data should be an object with:
     * query_type: string (e.g., "category_summary", "monthly_report", etc.)
     * results: array of matching transactions
     * summary: object with total_amount (number), count (integer) and period (string)
   - Date filtering rules:
     * "this month" = current month's transactions in {year}
     * "last month" = previous month's transactions in {year}
     * "this week" = current week's transactions in {year}
     * "last week" = previous week's transactions in {year}
     * "today" = current day's transactions
     * "yesterday" = previous day's transactions in {year}

4. Special rules for receipt image processing:
   - When analyzing receipt images:
     * Extract individual line items only
     * DO NOT include summary totals, tax amounts, or subtotals as separate items
     * DO NOT include service charges or tips as separate items
     * Focus on the main products/services purchased
     * If a line item has multiple products, split them into separate transactions
     * Use the receipt date if available, otherwise use current date
     * Match items to the most appropriate category from the provided list

Available categories:
{_dump(categories)}

Previous entries:
{_dump(entries)}

Currency: {currency}

Example valid outputs:

For categorization:
{{
  "type": "categorization",
  "message": "I've categorized your transactions",
  "data": [
    {{
      "amount": 20,
      "type": "expense",
      "description": "Coffee",
      "categoryId": "1",
      "date": "{current_date}",
      "id": "{EXAMPLE_ID}"
    }}
  ],
  "timestamp": "{current_date}"
}}

For query:
{{
  "type": "query_response",
  "message": "Here are your cat expenses for this month",
  "data": {{
    "query_type": "category_summary",
    "results": [
      {{
        "amount": 50,
        "type": "expense",
        "description": "Cat food",
        "categoryId": "2",
        "date": "{year}-03-15T10:00:00Z",
        "id": "{EXAMPLE_QUERY_ID}"
      }}
    ],
    "summary": {{
      "total_amount": 50,
      "count": 1,
      "period": "this_month"
    }}
  }},
  "timestamp": "{current_date}"
}}"""


def build_chat_messages(
    prompt: Optional[str],
    categories: Any,
    entries: Any = None,
    currency: Any = "USD",
    image_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[dict]:
    now = now or datetime.now(timezone.utc)
    messages = [
        {"role": "system", "content": chat_system_prompt(categories, [] if entries is None else entries, currency, now)},
    ]
    if image_url:
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": prompt or DEFAULT_RECEIPT_PROMPT},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        })
    else:
        messages.append({"role": "user", "content": prompt})
    return messages

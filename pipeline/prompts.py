"""
Reseller Analysis Prompt and Gemini Payload Builder
Prompt text is specialized by the item condition reported by the user
"""

from typing import Any, Dict, Optional

CONDITIONS = ("Used", "New", "New in Box")
DEFAULT_CONDITION = "Used"

# ============================================================
# CONDITION GUIDANCE
# ============================================================

CONDITION_GUIDANCE = """- "Used": Price should reflect used/opened condition. Look for used item prices on eBay/Amazon.
- "New": Price should reflect new/unopened condition. Look for new item prices.
- "New in Box": Price should reflect new in box (NIB) condition, which often commands a premium over just "New". Look for NIB/BNIB prices.

The condition significantly affects market value - used items are typically 30-50% less than new, while NIB can be 10-20% more than new."""

# ============================================================
# OUTPUT CONTRACT
# ============================================================

RESPONSE_FORMAT = """Return JSON with these exact fields:
{
  "verdict": "BUY" or "PASS",
  "market_price": number (ESTIMATED SELLING PRICE based on recent COMPLETED/SOLD listings, NOT asking prices. This is the key number for profit calculation),
  "ebay_price": number (current eBay listing price or average of recent sold listings),
  "amazon_price": number (current Amazon listing price if available),
  "current_price": number (lowest current listing price across platforms),
  "market_price_source": string (where market_price comes from, e.g. "Average of 5 recent eBay sold listings"),
  "net_profit": number (market_price - store_price - sales_tax - fees - shipping),
  "sales_tax_rate": number (estimated sales tax rate, typically 7-10),
  "sales_tax_amount": number (store_price * sales_tax_rate / 100),
  "fee_percentage": number (15, representing 15% platform fees),
  "fees_amount": number (market_price * 0.15),
  "shipping_cost": number (estimated shipping cost, typically 5-10),
  "profit_calculation": string (e.g. "$80.00 market price - $9.99 buy price - $0.70 sales tax (7%) - $12.00 fees (15%) - $7.00 shipping = $50.31 profit"),
  "reasoning": string,
  "velocity_score": "High" or "Med" or "Low",
  "product_name": string,
  "product_image_url": string (direct image link of the product from a marketplace listing, NOT the scanned photo, or null),
  "ebay_url": string (direct URL of a matching eBay listing, or null if you are not sure it exists),
  "amazon_url": string (direct URL of the matching Amazon product page, or null if you are not sure it exists),
  "market_analysis": string (formatted as:

"Market Analysis
The Item: [Full product name and model/sku if available]

Why it's good: [Brand value, collector appeal, hype factors, target audience]

Scarcity: [Availability status and how it affects price]

The Data:
eBay: [Active listings, recent sold prices, price range]
Amazon: [Listings and prices if available]
Other Platforms: [StockX, Grailed or other relevant sales history]

The Buy Cost: [Buy price vs retail/market value as a percentage]

Strategy:
Where to List: [Best platforms and why]
Keywords: [Keywords for the listing title]
Pricing: [Recommended list price, best offer strategy, lowest acceptable price]

Warnings: [Condition issues to check, common problems]

Summary: [Final action recommendation]")
}"""


def get_system_prompt(condition: str = DEFAULT_CONDITION) -> str:
    """Build the reseller system prompt for the given item condition"""
    return f"""You are an expert reseller. Analyze this image/barcode. Identify the item. Research and provide detailed pricing information:

IMPORTANT: The item condition is "{condition}". Adjust all pricing estimates accordingly:
{CONDITION_GUIDANCE}
- eBay prices: ALWAYS check current eBay listings and recent sold prices. Also extract the main product image URL and a direct listing URL if available.
- Amazon prices: ALWAYS search for this item on Amazon. Look for current listings and the Buy Box price. If not available, estimate from similar items or historical data.
- Current market price: The best estimate of what this item sells for currently
- Market price source: Specify where you found the market price

IMPORTANT: Always provide both ebay_price and amazon_price in your response. Use null if truly unavailable.

Velocity Score (how quickly this item sells):
- "High": sells within days/weeks. Many recent sold listings, consistent demand, popular brands.
- "Med": sells within weeks to months. Some recent sold listings, steady demand.
- "Low": sells over months or longer. Few sold listings, niche or seasonal items.

Calculate profit with detailed breakdown:
- Sales tax: Estimate 7-10% of buy price
- Standard reseller fees: 15% of market price (platform + payment fees)
- Shipping cost: Estimate $5-10 for typical items (adjust for size/weight if visible)
- Total buy cost = Buy Price + Sales Tax
- Net profit = Market Price - Total Buy Cost - Fees - Shipping Cost

{RESPONSE_FORMAT}"""


def build_gemini_payload(
    store_price: float,
    condition: str = DEFAULT_CONDITION,
    image_base64: Optional[str] = None,
    image_mime_type: str = "image/jpeg",
    barcode: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the generateContent request body.

    Part order: system prompt, image, barcode, store price + condition.
    """
    parts = [{"text": get_system_prompt(condition)}]

    if image_base64:
        parts.append({
            "inline_data": {
                "mime_type": image_mime_type,
                "data": image_base64,
            }
        })

    if barcode:
        parts.append({"text": f"Barcode: {barcode}"})

    parts.append({"text": f"Store Price: ${store_price:.2f}\nItem Condition: {condition}"})

    return {"contents": [{"parts": parts}]}

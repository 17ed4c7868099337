"""Static chatbot content: system prompt, greetings, quick replies and FAQ answers."""

SYSTEM_PROMPT = """You are a helpful AI assistant for CraftCurio, an online marketplace for handcrafted collectibles and artisan products.

Platform overview:
- CraftCurio connects collectors with artisans selling unique handcrafted items
- We support both direct purchases and live auction bidding
- Products include pottery, textiles, jewelry, woodwork, paintings, and more

Your role:
- Help users navigate the platform
- Answer questions about products, auctions, orders, and payments
- Provide friendly, concise, and accurate information
- If you don't know something, admit it and suggest contacting support
- Never make up product prices or availability, only use provided context

Rules:
- Be conversational and friendly
- Keep responses concise (2-3 paragraphs max)
- Use emojis sparingly
- For complex issues, suggest contacting human support
- Never ask for sensitive information (passwords, full card numbers)
- If the user seems frustrated, empathize and offer to escalate

Response format: start with a direct answer, provide relevant details, and end with a helpful question or next step."""

QUICK_REPLIES = [
    "🔍 Search Products",
    "🏷️ Browse Auctions",
    "📦 Track My Order",
    "💳 Payment Help",
    "❓ How to Bid",
    "👤 Account Help",
]

GREETING_MESSAGES = [
    "Hi! 👋 I'm your CraftCurio assistant. How can I help you today?",
    "Hello! Welcome to CraftCurio. What can I assist you with?",
    "Hi there! Need help finding something or have questions? I'm here to help!",
]

FALLBACK_MESSAGES = [
    "I'm not quite sure about that. Could you rephrase your question?",
    "I don't have information on that specific topic. Would you like to speak with our support team?",
    "That's a great question! Let me connect you with a human agent who can help better.",
]

# Lower-case substrings mapped to canned answers, checked before the model
FAQ_PATTERNS = {
    "how to bid": 'To place a bid: 1) Go to an active auction, 2) Enter your bid amount (must be higher than current bid + minimum increment), 3) Click "Place Bid". If you win, you have 48 hours to complete payment.',
    "payment methods": "We accept credit/debit cards, UPI, net banking, and digital wallets through Razorpay. All payments are secure and encrypted.",
    "shipping": 'Shipping time varies by artisan location and your address. Typically 5-10 business days. You can track your order in "My Orders" section.',
    "returns": "Returns accepted within 7 days of delivery for damaged or misrepresented items. Contact the artisan or our support team to initiate a return.",
    "account creation": 'Click "Sign Up" in the top right, enter your email and password, and verify your email. You can then browse as a buyer or register as an artisan.',
    "list products": 'Artisans can list products by going to "My Dashboard" > "Add New Product". Fill in details, upload images, set price, and choose direct sale or auction.',
    "auction vs direct": 'Direct Sale: Buy immediately at a fixed price. Auction: Bid against others, highest bidder wins when time expires. Some auctions have "Buy Now" for instant purchase.',
    "reserve price": "Reserve price is the minimum price a seller will accept. If bidding doesn't reach this amount, the item won't be sold.",
}

SUGGESTED_ACTIONS = {
    "search": ["Browse All Products", "View Categories"],
    "auction": ["View Live Auctions", "Learn More About Bidding"],
    "order": ["View My Orders", "Contact Seller"],
    "payment": ["Retry Payment", "Contact Support"],
}

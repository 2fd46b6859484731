from decimal import Decimal

# Roles
ROLE_CUSTOMER = 'customer'
ROLE_RESTAURANT = 'restaurant'
ROLE_ADMIN = 'admin'
USER_ROLES = (ROLE_CUSTOMER, ROLE_RESTAURANT, ROLE_ADMIN)
SELF_REGISTRATION_ROLES = (ROLE_CUSTOMER, ROLE_RESTAURANT)
RESTAURANT_MANAGER_ROLES = (ROLE_RESTAURANT, ROLE_ADMIN)

# Restaurant statuses
RESTAURANT_PENDING = 'pending'
RESTAURANT_APPROVED = 'approved'
RESTAURANT_REJECTED = 'rejected'
RESTAURANT_SUSPENDED = 'suspended'
RESTAURANT_STATUSES = (RESTAURANT_PENDING, RESTAURANT_APPROVED, RESTAURANT_REJECTED, RESTAURANT_SUSPENDED)
RESTAURANT_ADMIN_STATUSES = (RESTAURANT_APPROVED, RESTAURANT_REJECTED, RESTAURANT_SUSPENDED)

CUISINES = (
    'Italian', 'Chinese', 'Indian', 'Mexican', 'American', 'Thai', 'Japanese', 'Mediterranean',
    'French', 'Korean', 'Vietnamese', 'Greek', 'Spanish', 'Middle Eastern', 'Fast Food',
    'Pizza', 'Burgers', 'Sushi', 'Desserts', 'Healthy', 'Vegan', 'Other'
)

MENU_CATEGORIES = (
    'Appetizers', 'Main Course', 'Desserts', 'Beverages', 'Salads', 'Soups', 'Sides',
    'Breakfast', 'Lunch', 'Dinner', 'Snacks', 'Specials', 'Other'
)

SPICE_LEVELS = ('None', 'Mild', 'Medium', 'Hot', 'Extra Hot')

# Orders
ORDER_PENDING = 'pending'
ORDER_CONFIRMED = 'confirmed'
ORDER_PREPARING = 'preparing'
ORDER_READY = 'ready'
ORDER_PICKED_UP = 'picked_up'
ORDER_OUT_FOR_DELIVERY = 'out_for_delivery'
ORDER_DELIVERED = 'delivered'
ORDER_CANCELLED = 'cancelled'
ORDER_REFUNDED = 'refunded'

ORDER_PROGRESSION = (
    ORDER_PENDING, ORDER_CONFIRMED, ORDER_PREPARING, ORDER_READY,
    ORDER_PICKED_UP, ORDER_OUT_FOR_DELIVERY, ORDER_DELIVERED
)
ORDER_TERMINAL_STATUSES = (ORDER_DELIVERED, ORDER_CANCELLED, ORDER_REFUNDED)
ORDER_STATUSES = ORDER_PROGRESSION + (ORDER_CANCELLED, ORDER_REFUNDED)
ORDER_STATUS_UPDATE_CHOICES = ORDER_PROGRESSION[1:] + (ORDER_CANCELLED,)
ORDER_ACTIVE_STATUSES = (ORDER_CONFIRMED, ORDER_PREPARING, ORDER_READY, ORDER_OUT_FOR_DELIVERY)

ORDER_TYPE_DELIVERY = 'delivery'
ORDER_TYPE_PICKUP = 'pickup'
ORDER_TYPES = (ORDER_TYPE_DELIVERY, ORDER_TYPE_PICKUP)

PAYMENT_METHODS = ('Cash', 'Card', 'Digital Wallet', 'Online Payment')
PAYMENT_PENDING = 'pending'
PAYMENT_REFUNDED = 'refunded'

SERVICE_FEE_RATE = Decimal('0.05')
TAX_RATE = Decimal('0.08')

DELIVERY_ETA_MINUTES = 45
PICKUP_ETA_MINUTES = 20

ORDER_NUMBER_PREFIX = 'ORD'
ORDER_COUNTER_NAME = 'orders'

# Catalog defaults
DEFAULT_DELIVERY_RADIUS_KM = Decimal('5')
DEFAULT_SEARCH_RADIUS_KM = 10
DEFAULT_ESTIMATED_DELIVERY_TIME = '30-45 min'

# Pagination
RESTAURANTS_PAGE_LIMIT = 12
ORDERS_PAGE_LIMIT = 10
RESTAURANT_ORDERS_PAGE_LIMIT = 20
ADMIN_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 50
ADMIN_MAX_PAGE_LIMIT = 100

# Auth
DEFAULT_JWT_EXPIRE_DAYS = 7
DEFAULT_BCRYPT_ROUNDS = 12
JWT_ALGORITHM = 'HS256'

# Email
DEFAULT_EMAIL_FROM = 'noreply@food-delivery.local'

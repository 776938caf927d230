from .state import AppState, COLLECTIONS, ROLE_ADMIN, ROLE_USER, TYPE_IN, TYPE_OUT
from .balance import calc_balances_by_warehouse, balance_rows, is_low_stock, product_total
from .reducers import reduce, filter_movements, authenticate

# Ticket stores
from eventpass.stores.base import TicketStore, StoreTransaction
from eventpass.stores.postgres import PostgresTicketStore, PostgresTransaction

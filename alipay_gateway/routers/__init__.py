from .callbacks import create_callback_router

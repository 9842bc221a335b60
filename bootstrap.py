import logging

from app.app_state import get_context
from app.db import Base, engine
from app.services.bootstrap_service import seed_default_students


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('bootstrap')


def main():
    Base.metadata.create_all(bind=engine)
    ctx = get_context()
    if ctx.restore_session() is None:
        logger.info('Bootstrap skipped: no signed-in account on this device')
        return
    try:
        ctx.prepare_account()
        result = seed_default_students(ctx.repository())
        if result.get('ran'):
            logger.info('Bootstrap executed: %s', result)
        else:
            logger.info('Bootstrap skipped: %s', result)
    finally:
        ctx.shutdown()


if __name__ == '__main__':
    main()

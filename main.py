from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, get_settings, make_engine, make_session_factory
from core.ledger import Ledger
from core.round_scheduler import RoundScheduler
from api import bets, rounds

logger = logging.getLogger(__name__)

RULES = (
    "Every participant starts with {balance} after registering. Bet any positive "
    "integer amount; the more you bet, the higher your chance. Every {period:g} seconds "
    "one lucky participant is drawn and receives the whole pool of the round."
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(settings=None, engine=None, rng=None, start_scheduler: bool = True) -> FastAPI:
    """
    建立 FastAPI app

    參數：
        settings: Settings，預設讀環境變數 / .env
        engine: SQLAlchemy Engine，預設依 settings.database_url 建立
        rng: 抽獎亂數來源（測試時注入固定種子）
        start_scheduler: False 時不啟動背景開獎（測試手動呼叫 scheduler.resolve()）
    """
    settings = settings or get_settings()
    engine = engine or make_engine(settings.database_url)

    ledger = Ledger(make_session_factory(engine), default_balance=settings.default_balance)
    scheduler = RoundScheduler(
        ledger,
        round_seconds=settings.round_seconds,
        retry_seconds=settings.retry_seconds,
        rng=rng
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立資料表並開啟目前回合；連不上資料庫就直接中止啟動
        try:
            Base.metadata.create_all(bind=engine)
            if start_scheduler:
                await scheduler.start(reset=settings.reset_on_startup)
            else:
                scheduler.open(reset=settings.reset_on_startup)
        except Exception as e:
            logger.critical(f"Cannot reach the store at startup: {e}")
            raise
        logger.info(RULES.format(balance=settings.default_balance, period=settings.round_seconds))
        yield
        # Shutdown: 停止背景開獎
        await scheduler.stop()

    app = FastAPI(
        title="Weighted Lottery API",
        description="Fixed-period lottery where the win chance is proportional to the wager",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.ledger = ledger
    app.state.scheduler = scheduler

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(bets.router)
    app.include_router(rounds.router)

    @app.get("/")
    def root():
        return {"message": "Weighted Lottery API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


configure_logging(get_settings().log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

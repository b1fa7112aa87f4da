"""One-time DB setup: create tables and seed essential records."""
from datetime import datetime, timedelta, timezone

from quizapp.core.security import hash_password
from quizapp.db.models import QuizResult, RoleEnum, User
from quizapp.db.session import Base, get_engine, get_session_factory

# 1. Create all tables
engine = get_engine()
Base.metadata.create_all(bind=engine)
print("✅ All tables created in PostgreSQL")

session_factory = get_session_factory()
with session_factory() as db:
    # 2. Test admin user
    admin = db.query(User).filter(User.email == "admin@example.com").first()
    if not admin:
        admin = User(
            email="admin@example.com",
            hashed_password=hash_password("admin123"),
            first_name="Admin",
            last_name="User",
            role=RoleEnum.ADMIN,
        )
        db.add(admin)
        db.commit()
        print("✅ Created admin: admin@example.com / admin123")
    else:
        print("  Admin user already exists")

    # 3. Test trainee user
    trainee = db.query(User).filter(User.email == "jane.doe@example.com").first()
    if not trainee:
        trainee = User(
            email="jane.doe@example.com",
            hashed_password=hash_password("trainee123"),
            first_name="Jane",
            last_name="Doe",
            role=RoleEnum.TRAINEE,
        )
        db.add(trainee)
        db.commit()
        db.refresh(trainee)
        print("✅ Created trainee: jane.doe@example.com / trainee123")
    else:
        print("  Trainee user already exists")

    # 4. A legacy-shaped result (aggregates only, no per-question entries)
    legacy = db.query(QuizResult).filter(QuizResult.user_id == trainee.id).first()
    if not legacy:
        finished = datetime.now(timezone.utc) - timedelta(days=3)
        db.add(
            QuizResult(
                user_id=trainee.id,
                email=trainee.email,
                first_name=trainee.first_name,
                last_name=trainee.last_name,
                topics=["git", "linux"],
                started_at=finished - timedelta(seconds=240),
                finished_at=finished,
                duration_seconds=240,
                total_questions=20,
                attempted_count=20,
                correct_count=14,
                wrong_count=4,
                skipped_count=2,
                timed_out_count=0,
                score=10,
                reason="manual",
                results=[],
            )
        )
        db.commit()
        print("✅ Created legacy sample result for jane.doe@example.com")
    else:
        print("  Sample result already exists")

print("\n🎉 Database is ready to use!")
print("   Admin:   admin@example.com    / admin123")
print("   Trainee: jane.doe@example.com / trainee123")

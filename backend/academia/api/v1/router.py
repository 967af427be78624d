from fastapi import APIRouter
from academia.api.v1.endpoints import auth, users, departments, subjects, grades, analytics, health

api_router = APIRouter()

# Deep health checks (/health/live, /health/ready)
api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(departments.router, prefix="/departments", tags=["Departments"])
api_router.include_router(subjects.router, prefix="/subjects", tags=["Subjects"])
api_router.include_router(grades.router, prefix="/grades", tags=["Grades"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])

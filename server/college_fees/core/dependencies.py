from fastapi import Depends
from college_fees.db.directory import StudentDirectory, SupabaseStudentDirectory
from college_fees.db.fee_store import FeeRecordStore, SupabaseFeeStore
from college_fees.db.supabase import SupabaseQueries, get_supabase_admin_client
from college_fees.services.fee_service import FeeService


def get_queries() -> SupabaseQueries:
    return SupabaseQueries(get_supabase_admin_client())


def get_fee_store(db: SupabaseQueries = Depends(get_queries)) -> FeeRecordStore:
    return SupabaseFeeStore(db)


def get_student_directory(db: SupabaseQueries = Depends(get_queries)) -> StudentDirectory:
    return SupabaseStudentDirectory(db)


def get_fee_service(
    store: FeeRecordStore = Depends(get_fee_store),
    directory: StudentDirectory = Depends(get_student_directory)
) -> FeeService:
    """
    Fee service for one request. Tests override this dependency with a
    service over in-memory doubles.
    """
    return FeeService(store, directory)

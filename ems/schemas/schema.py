# ems/schemas/schema.py
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator

T = TypeVar("T")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Departments

class DepartmentBase(BaseModel):
    """Base schema for department data"""
    name: str = Field(..., description="Department name", max_length=100, examples=["Engineering"])
    description: Optional[str] = Field(None, description="Department description", max_length=500)
    manager_name: Optional[str] = Field(None, description="Manager name", max_length=100)


class DepartmentCreate(DepartmentBase):
    """Schema for creating a department"""


class DepartmentUpdate(DepartmentBase):
    """Schema for replacing a department's mutable fields"""


class DepartmentResponse(DepartmentBase, ORMModel):
    """Schema for department response"""
    id: int
    employee_count: int = Field(0, description="Number of employees in the department")
    created_at: datetime
    updated_at: Optional[datetime] = None


# Employees

class EmployeeBase(BaseModel):
    """Base schema for employee data"""
    first_name: str = Field(..., max_length=100, examples=["John"])
    last_name: str = Field(..., max_length=100, examples=["Doe"])
    email: EmailStr = Field(..., examples=["john.doe@example.com"])
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    date_of_birth: date = Field(..., examples=["1990-04-12"])
    date_of_joining: date = Field(..., examples=["2023-01-15"])
    position: Optional[str] = Field(None, max_length=100, examples=["Software Engineer"])
    salary: Decimal = Field(..., ge=0, max_digits=18, decimal_places=2, examples=[75000])
    department_id: int = Field(..., gt=0)


class EmployeeCreate(EmployeeBase):
    """Schema for creating an employee"""


class EmployeeUpdate(EmployeeBase):
    """Schema for replacing an employee's mutable fields"""
    is_active: bool = True


class EmployeeResponse(EmployeeBase, ORMModel):
    """Schema for employee response"""
    id: int
    department_name: str = ""
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class EmployeeBulkCreate(BaseModel):
    """Schema for bulk employee creation"""
    employees: List[EmployeeCreate] = Field(..., min_length=1)


class EmployeeBulkDelete(BaseModel):
    employee_ids: List[int] = Field(..., min_length=1)


class PageRequest(BaseModel):
    page_number: int = 1
    page_size: int = 10
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_descending: bool = False

    @field_validator("page_number")
    @classmethod
    def clamp_page_number(cls, v):
        return v if v >= 1 else 1

    @field_validator("page_size")
    @classmethod
    def clamp_page_size(cls, v):
        return v if 1 <= v <= 100 else 10


class Page(BaseModel, Generic[T]):
    data: List[T]
    total_count: int
    page_number: int
    page_size: int

    @computed_field
    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size


# Attendance

class CheckIn(BaseModel):
    """Check-in request. Timestamps are always taken server-side."""
    employee_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=500)


class CheckOut(BaseModel):
    """Check-out request. Timestamps are always taken server-side."""
    employee_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=500)


class AttendanceResponse(ORMModel):
    id: int
    employee_id: int
    employee_name: str = ""
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    total_hours: Optional[timedelta] = None
    notes: Optional[str] = None
    date: date
    created_at: datetime
    updated_at: Optional[datetime] = None


# Performance metrics

class PerformanceMetricBase(BaseModel):
    year: int = Field(..., ge=1900, le=2100, examples=[2025])
    quarter: int = Field(..., examples=[2])
    performance_score: Decimal = Field(..., examples=[87.5])
    comments: Optional[str] = Field(None, max_length=1000)
    goals: Optional[str] = Field(None, max_length=100)
    achievements: Optional[str] = Field(None, max_length=100)


class PerformanceMetricCreate(PerformanceMetricBase):
    employee_id: int = Field(..., gt=0)


class PerformanceMetricUpdate(PerformanceMetricBase):
    pass


class PerformanceMetricResponse(PerformanceMetricBase, ORMModel):
    id: int
    employee_id: int
    employee_name: str = ""
    created_at: datetime
    updated_at: Optional[datetime] = None


# Misc

class ResponseMessage(BaseModel):
    """Schema for response messages"""
    message: str = Field(..., description="Response message")


class DepartmentCount(BaseModel):
    """Schema for employee count by department"""
    department: str
    count: int


class ReportFormatInfo(BaseModel):
    format: str
    content_type: str
    extension: str


class ReportCatalog(BaseModel):
    datasets: List[str]
    formats: List[ReportFormatInfo]


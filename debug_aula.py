#!/usr/bin/env python3
"""
Aula Debug Script

Signs in to the school platform and prints what the dashboard would show
for the given courses and students: attendance records with their badges
and stats, and the latest assignments with their overdue/pending status.

Usage:
    python3 debug_aula.py [--course COURSE_ID ...] [--student STUDENT_ID ...]

Credentials are read from a .env file in the repository root:
    AULA_URL=https://your-project.supabase.co
    AULA_API_KEY=public-anon-key
    AULA_EMAIL=parent@example.com
    AULA_PASSWORD=your_password_here
    AULA_COURSE_IDS=course-1,course-2
    AULA_STUDENT_IDS=student-1
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from pathlib import Path

import aiohttp
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

# Add the custom_components directory to Python path
sys.path.insert(0, str(Path(__file__).parent / "custom_components" / "aula"))

from aula.auth import SupabaseAuth
from aula.client import AulaClient
from aula.exceptions import AttendanceFetchError, AulaAuthError, AulaConnectionError
from aula.utils import parse_id_list
from aula.views import assignment_attributes, attendance_record_attributes


async def debug_attendance(client: AulaClient, course_id: str) -> None:
	print(f"\n📋 Attendance for course {course_id}")
	print("-" * 50)
	try:
		report = await client.fetch_attendance(course_id)
	except AttendanceFetchError as err:
		print(f"   ❌ {err.message}")
		return

	if not report.records:
		print("   No hay registros de asistencia aún")
	for record in report.records:
		attrs = attendance_record_attributes(record)
		print(f"   {attrs['date_display']:<28} {attrs['student']:<30} {attrs['label']:<12} {attrs['notes']}")
	print(f"   Stats: {json.dumps(report.stats, ensure_ascii=False) if report.stats is not None else 'none'}")


async def debug_assignments(client: AulaClient, student_id: str) -> None:
	print(f"\n📚 Assignments for student {student_id}")
	print("-" * 50)
	assignments = await client.load_assignments(student_id)
	if not assignments:
		print("   No hay tareas registradas aún.")
	for assignment in assignments:
		attrs = assignment_attributes(assignment)
		print(f"   [{attrs['status_label']:<9}] {attrs['title']} ({attrs['course_name']}) - Entrega: {attrs['due_date_display']}")


async def main() -> int:
	parser = argparse.ArgumentParser(description="Print Aula dashboard data")
	parser.add_argument("--course", action="append", default=[], help="Course id (repeatable)")
	parser.add_argument("--student", action="append", default=[], help="Student id (repeatable)")
	parser.add_argument("--limit", type=int, default=10, help="Number of latest assignments")
	parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
	args = parser.parse_args()

	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)

	url = os.getenv("AULA_URL") or input("Project URL: ")
	api_key = os.getenv("AULA_API_KEY") or input("Public API key: ")
	email = os.getenv("AULA_EMAIL") or input("Email: ")
	password = os.getenv("AULA_PASSWORD") or getpass.getpass("Password: ")
	course_ids = args.course or parse_id_list(os.getenv("AULA_COURSE_IDS"))
	student_ids = args.student or parse_id_list(os.getenv("AULA_STUDENT_IDS"))

	async with aiohttp.ClientSession() as session:
		auth = SupabaseAuth(session, url, api_key)
		client = AulaClient(url, api_key, auth, session=session, assignment_limit=args.limit)
		try:
			await auth.login(email, password)
		except (AulaAuthError, AulaConnectionError) as err:
			print(f"❌ Sign-in failed: {err}")
			return 1
		print("✅ Signed in")

		for course_id in course_ids:
			await debug_attendance(client, course_id)
		for student_id in student_ids:
			await debug_assignments(client, student_id)

	return 0


if __name__ == "__main__":
	sys.exit(asyncio.run(main()))

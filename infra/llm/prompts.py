CV_EVAL_PROMPT = """
You are a technical recruiter scoring CVs. Use the Reference Documents to evaluate the candidate's CV
against the job title.

Evaluation rules:
- Base every judgment ONLY on the Reference Documents and the CV.
- Do NOT infer missing data. Do NOT use prior knowledge.
- High scores require multiple strong, explicit matches to the References.

Return ONLY strict JSON:
{
  "cv_match_rate": <number between 0 and 1>,
  "cv_feedback": "<one or two sentences summarizing the overall sentiment>"
}
"""


PROJECT_EVAL_PROMPT = """
You are a senior engineer evaluating a candidate's project report. Use the Reference Documents
(case study brief and scoring rubric) to evaluate it.

Evaluation rules:
- Only evaluate parameters explicitly mentioned in the References.
- Assign scores only when evidence clearly supports them.

Return ONLY strict JSON:
{
  "project_score": <number between 1 and 5>,
  "project_feedback": "<one or two sentences summarizing the overall sentiment>"
}
"""


FINAL_SUMMARY_PROMPT = """
You are a hiring manager. Analyze the provided CV evaluation and project evaluation.
Minimum passing grade is {cv_pass} for the CV match rate and {project_pass} for the project score.

Return ONLY strict JSON:
{{
  "overall_summary": "<3 to 5 sentence summary of the candidate's fit for the role>",
  "is_accepted": <true if the candidate is a good fit, false otherwise>
}}
"""

CV_PASSING_RATE = 0.5
PROJECT_PASSING_SCORE = 3

# retrieval queries sent to the knowledge base
CV_REFERENCE_QUERY = "Fetch data related to CV evaluation for {job_title} job"
PROJECT_REFERENCE_QUERY = "Fetch data related to project evaluation and its case study"
